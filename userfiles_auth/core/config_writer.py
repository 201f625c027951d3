"""
Writer for user-files connection documents.

Produces documents in the same layout the parser reads, for provisioning
scripts that hand out one-shot (delete="true") or time-limited
(valid_to) connection files.
"""
import logging
import os
import tempfile
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional

from .config_parser import CONFIG_ELEMENT, PARAM_ELEMENT, ROOT_ELEMENT
from .profiles import ConnectionProfile

logger = logging.getLogger(__name__)


def format_valid_to(valid_to: datetime) -> str:
    """Format a timestamp as ISO-8601 with millisecond precision and offset."""
    if valid_to.tzinfo is None:
        valid_to = valid_to.astimezone()
    return valid_to.isoformat(timespec="milliseconds")


def build_config_document(
    profiles: Mapping[str, ConnectionProfile],
    delete: bool = False,
    valid_to: Optional[datetime] = None,
) -> bytes:
    """
    Serialize profiles into a config document.

    Args:
        profiles: Profile name -> profile
        delete: Mark the document for deletion after it has been read once
        valid_to: Optional expiry timestamp (naive values are local time)

    Returns:
        UTF-8 encoded XML document with declaration
    """
    root = ET.Element(ROOT_ELEMENT)
    root.set("delete", "true" if delete else "false")
    if valid_to is not None:
        root.set("valid_to", format_valid_to(valid_to))

    for name, profile in profiles.items():
        config = ET.SubElement(root, CONFIG_ELEMENT, name=name, protocol=profile.protocol)
        for key, value in profile.parameters.items():
            ET.SubElement(config, PARAM_ELEMENT, name=key, value=value)

    ET.indent(root)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True) + b"\n"


def write_config_file(
    path: Path,
    profiles: Mapping[str, ConnectionProfile],
    delete: bool = False,
    valid_to: Optional[datetime] = None,
) -> Path:
    """
    Write a config document atomically.

    The document is written to a temporary file in the target directory and
    renamed into place, so a concurrent reader never sees a partial file.

    Returns:
        The written path
    """
    path = Path(path)
    document = build_config_document(profiles, delete=delete, valid_to=valid_to)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(document)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Wrote {len(profiles)} configuration(s) to {path}")
    return path
