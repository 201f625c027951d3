"""
Streaming parser for user-files connection documents.

Document layout:

    <configs delete="yes" valid_to="2099-01-01T00:00:00Z">
      <config name="srv1" protocol="rdp">
        <param name="hostname" value="10.0.0.1" />
      </config>
    </configs>

The parser pulls start/end events from defusedxml's iterparse (DTDs,
entity declarations and external references are refused) and drives an
explicit two-state machine:

    Idle       -- <config>  --> InProfile
    InProfile  -- </config> --> Idle

Root attributes (delete, valid_to) are read from the first <configs>
element and never again. Duplicate profile names keep the last occurrence
unless strict_duplicates is set.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import BinaryIO, NamedTuple, Optional, Union

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeET

from .errors import (
    ConfigFileNotFoundError,
    ConfigReadError,
    DuplicateProfileError,
    MissingAttributeError,
    NestedConfigError,
    OrphanParameterError,
    XmlSyntaxError,
)
from .profiles import ConnectionProfile, ParseResult

logger = logging.getLogger(__name__)

ROOT_ELEMENT = "configs"
CONFIG_ELEMENT = "config"
PARAM_ELEMENT = "param"

DELETE_TRUE_VALUES = frozenset({"yes", "true", "1"})


# =============================================================================
# valid_to timestamp layouts
# =============================================================================

class TimestampLayout(NamedTuple):
    """One accepted valid_to layout, tried in declaration order."""

    name: str
    pattern: re.Pattern


_STAMP = r"(?P<stamp>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
_FRACTION = r"\.(?P<fraction>\d+)"
_OFFSET_COLON = r"(?P<zone>Z|[+-]\d{2}:\d{2})"
_OFFSET_COMPACT = r"(?P<zone>Z|[+-]\d{4})"

VALID_TO_LAYOUTS: tuple[TimestampLayout, ...] = (
    TimestampLayout("fraction+offset", re.compile(_STAMP + _FRACTION + _OFFSET_COLON)),
    TimestampLayout("fraction+zone", re.compile(_STAMP + _FRACTION + _OFFSET_COMPACT)),
    TimestampLayout("fraction+local", re.compile(_STAMP + _FRACTION)),
    TimestampLayout("seconds+offset", re.compile(_STAMP + _OFFSET_COLON)),
    TimestampLayout("seconds+zone", re.compile(_STAMP + _OFFSET_COMPACT)),
    TimestampLayout("seconds+local", re.compile(_STAMP)),
)


def _zone_from_token(token: str) -> timezone:
    if token == "Z":
        return timezone.utc
    sign = -1 if token[0] == "-" else 1
    digits = token[1:].replace(":", "")
    hours, minutes = int(digits[:2]), int(digits[2:])
    if hours > 23 or minutes > 59:
        raise ValueError(f"offset out of range: {token}")
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def parse_valid_to(value: str) -> datetime:
    """
    Parse a valid_to timestamp against the accepted layouts.

    Layouts without a zone are interpreted in local time. The result is
    always timezone-aware.

    Raises:
        ValueError: If no layout matches
    """
    last_error = "no layout matched"
    for layout in VALID_TO_LAYOUTS:
        match = layout.pattern.fullmatch(value)
        if match is None:
            continue
        try:
            parsed = datetime.strptime(match.group("stamp"), "%Y-%m-%dT%H:%M:%S")
            fraction = match.groupdict().get("fraction")
            if fraction:
                # Sub-microsecond digits are truncated
                parsed = parsed.replace(microsecond=int(fraction[:6].ljust(6, "0")))
            zone = match.groupdict().get("zone")
            if zone:
                return parsed.replace(tzinfo=_zone_from_token(zone))
            return parsed.astimezone()
        except ValueError as e:
            last_error = f"{layout.name}: {e}"
    raise ValueError(f"Unparseable date: {value!r} ({last_error})")


def parse_delete_flag(value: Optional[str]) -> bool:
    """Return True when the delete attribute is yes/true/1 in any letter case."""
    return value is not None and value.lower() in DELETE_TRUE_VALUES


# =============================================================================
# State machine
# =============================================================================

class ParserState(Enum):
    IDLE = "idle"
    IN_PROFILE = "in_profile"


@dataclass
class _ProfileAccumulator:
    """In-progress profile, owned by the parser between <config> and </config>."""

    name: str
    protocol: str
    parameters: dict[str, str] = field(default_factory=dict)

    def build(self) -> ConnectionProfile:
        return ConnectionProfile(protocol=self.protocol, parameters=self.parameters)


def _local_name(tag: str) -> str:
    # "{namespace}config" -> "config"
    return tag.rsplit("}", 1)[-1]


Source = Union[str, Path, BinaryIO]


class ConfigDocumentParser:
    """
    Single-pass parser producing a ParseResult.

    A parser instance holds state for one document at a time; create one per
    parse (parse_config_file does this) or call parse() sequentially.
    """

    def __init__(self, strict_duplicates: bool = False):
        """
        Args:
            strict_duplicates: Reject repeated profile names instead of
                keeping the last occurrence
        """
        self.strict_duplicates = strict_duplicates
        self._reset()

    def _reset(self) -> None:
        self._state = ParserState.IDLE
        self._current: Optional[_ProfileAccumulator] = None
        self._profiles: dict[str, ConnectionProfile] = {}
        self._root_seen = False
        self._delete_after_read = False
        self._valid_to: Optional[datetime] = None
        self._source_path: Optional[Path] = None

    @property
    def state(self) -> ParserState:
        return self._state

    def parse(self, source: Source) -> ParseResult:
        """
        Parse a document from a binary stream or a filesystem path.

        Args:
            source: Open binary stream, or path to the document

        Returns:
            ParseResult with a read-only profile mapping

        Raises:
            XmlSyntaxError: Malformed markup or forbidden XML constructs
            ConfigReadError: The stream could not be read
            NestedConfigError, OrphanParameterError, MissingAttributeError,
            DuplicateProfileError: Structural violations
        """
        self._reset()

        try:
            if isinstance(source, (str, Path)):
                self._source_path = Path(source)
                with self._source_path.open("rb") as stream:
                    self._consume(stream)
            else:
                self._consume(source)
        except SafeET.ParseError as e:
            raise XmlSyntaxError(
                f"Error parsing XML file: {e}", path=self._source_path
            ) from e
        except DefusedXmlException as e:
            raise XmlSyntaxError(
                f"Forbidden XML construct: {e}", path=self._source_path
            ) from e
        except FileNotFoundError as e:
            raise ConfigFileNotFoundError(
                f"Configuration file not found: {source}", path=self._source_path
            ) from e
        except OSError as e:
            raise ConfigReadError(
                f"Error reading configuration file: {e}", path=self._source_path
            ) from e

        result = ParseResult(
            profiles=MappingProxyType(self._profiles),
            valid_to=self._valid_to,
            delete_after_read=self._delete_after_read,
        )
        # Drop references so the returned mapping is not reachable for mutation
        self._profiles = {}
        self._current = None
        return result

    def _consume(self, stream: BinaryIO) -> None:
        events = SafeET.iterparse(stream, events=("start", "end"), forbid_dtd=True)
        for event, element in events:
            if event == "start":
                self._start_element(_local_name(element.tag), element.attrib)
            else:
                self._end_element(_local_name(element.tag))
                element.clear()

    def _start_element(self, name: str, attrs: dict[str, str]) -> None:
        if name == CONFIG_ELEMENT:
            self._open_profile(attrs)
        elif name == PARAM_ELEMENT:
            self._add_parameter(attrs)
        elif name == ROOT_ELEMENT:
            self._read_root_attributes(attrs)

    def _end_element(self, name: str) -> None:
        if name == CONFIG_ELEMENT and self._state is ParserState.IN_PROFILE:
            self._close_profile()

    def _open_profile(self, attrs: dict[str, str]) -> None:
        if self._state is ParserState.IN_PROFILE:
            raise NestedConfigError(
                "Configurations cannot be nested.", path=self._source_path
            )

        profile_name = attrs.get("name")
        if profile_name is None:
            raise MissingAttributeError(
                "Each configuration must have a name.",
                attribute="name",
                path=self._source_path,
            )

        protocol = attrs.get("protocol")
        if protocol is None:
            raise MissingAttributeError(
                "Each configuration must have a protocol.",
                attribute="protocol",
                path=self._source_path,
            )

        self._current = _ProfileAccumulator(name=profile_name, protocol=protocol)
        self._state = ParserState.IN_PROFILE

    def _add_parameter(self, attrs: dict[str, str]) -> None:
        if self._state is not ParserState.IN_PROFILE or self._current is None:
            raise OrphanParameterError(
                "Parameter without corresponding configuration.",
                path=self._source_path,
            )

        param_name = attrs.get("name")
        if param_name is None:
            logger.warning(
                f"CONFIG_PARSER: Ignoring param without name in config "
                f"'{self._current.name}'"
            )
            return

        self._current.parameters[param_name] = attrs.get("value", "")

    def _close_profile(self) -> None:
        finished = self._current
        if finished.name in self._profiles:
            if self.strict_duplicates:
                raise DuplicateProfileError(
                    f"Duplicate configuration name: {finished.name}",
                    name=finished.name,
                    path=self._source_path,
                )
            logger.debug(
                f"CONFIG_PARSER: Duplicate config '{finished.name}' replaces earlier one"
            )

        self._profiles[finished.name] = finished.build()
        self._current = None
        self._state = ParserState.IDLE

    def _read_root_attributes(self, attrs: dict[str, str]) -> None:
        if self._root_seen:
            return
        self._root_seen = True

        self._delete_after_read = parse_delete_flag(attrs.get("delete"))

        valid_to = attrs.get("valid_to")
        if valid_to is not None:
            try:
                self._valid_to = parse_valid_to(valid_to)
            except ValueError as e:
                logger.warning(f'CONFIG_PARSER: Invalid "valid_to" = "{valid_to}" date. {e}')


def parse_config_file(path: Path, strict_duplicates: bool = False) -> ParseResult:
    """
    Parse a config file from disk.

    Raises:
        ConfigFileNotFoundError: If the file does not exist
        ConfigReadError: If the file cannot be read
        XmlSyntaxError, NestedConfigError, OrphanParameterError,
        MissingAttributeError: If the document is invalid
    """
    logger.debug(f'CONFIG_PARSER: Reading configuration file: "{path}"')
    return ConfigDocumentParser(strict_duplicates=strict_duplicates).parse(Path(path))
