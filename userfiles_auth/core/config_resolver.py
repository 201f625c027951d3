"""
Config file resolution for user-files authentication.

Maps an identity prefix (derived from the request's username / ident) to a
config file under the gateway home directory. The prefix is the only
externally controlled part of the path, so it is validated against a strict
character class before being joined to the home directory.

This module performs no I/O. Existence is checked by the caller.
"""
import logging
import re
from pathlib import Path
from typing import Optional

from .errors import InvalidIdentifierError

logger = logging.getLogger(__name__)

# Default config filename, also the suffix of every per-user file
DEFAULT_CONFIG_FILENAME = "noauth-config.xml"

# Word characters, space, hyphen, dot and a fixed set of accented letters.
# Matched against the whole prefix; \w is ASCII-only.
PREFIX_PATTERN = re.compile(r"^[\w \-.öÖäÄüÜßèéêù]+$", re.ASCII)


def build_identity_prefix(username: Optional[str], ident: Optional[str]) -> Optional[str]:
    """
    Build the filename prefix for a request's identity.

    Args:
        username: Username from the request (may be empty or None)
        ident: Session/ident value from the request (may be empty or None)

    Returns:
        "username_ident_", "anonymous_ident_" or None for the default file
    """
    username = username or ""
    ident = ident or ""

    if username and ident:
        return f"{username}_{ident}_"
    if ident:
        return f"anonymous_{ident}_"
    return None


class ConfigFileResolver:
    """
    Resolve config file paths under a fixed home directory.

    Responsibilities:
        1. Default file when no prefix is given
        2. Reject prefixes that could break out of the home directory
        3. Join accepted prefixes onto the default filename
    """

    def __init__(self, home_dir: Path, filename: str = DEFAULT_CONFIG_FILENAME):
        self.home_dir = Path(home_dir)
        self.filename = filename

    def resolve(self, prefix: Optional[str] = None) -> Path:
        """
        Compute the config file path for a prefix.

        Args:
            prefix: Identity prefix, or None/"" for the default file

        Returns:
            Path under the home directory

        Raises:
            InvalidIdentifierError: If the prefix contains disallowed characters
        """
        if not prefix:
            return self.home_dir / self.filename

        self.validate_prefix(prefix)
        return self.home_dir / f"{prefix}{self.filename}"

    def validate_prefix(self, prefix: str) -> None:
        """
        Validate an identity prefix.

        Raises:
            InvalidIdentifierError: If the prefix is rejected
        """
        if "\x00" in prefix:
            self._log_blocked(prefix, "Null byte")
            raise InvalidIdentifierError(
                "Invalid username or ident.",
                prefix=prefix,
                reason="Prefix contains a null byte",
            )

        # Dots are allowed individually, so ".." needs its own check
        if ".." in prefix:
            self._log_blocked(prefix, "Traversal sequence")
            raise InvalidIdentifierError(
                "Invalid username or ident.",
                prefix=prefix,
                reason="Prefix contains a traversal sequence",
            )

        # fullmatch so a trailing newline cannot slip past "$"
        if not PREFIX_PATTERN.fullmatch(prefix):
            self._log_blocked(prefix, "Disallowed characters")
            raise InvalidIdentifierError(
                "Invalid username or ident.",
                prefix=prefix,
                reason="Prefix contains characters outside the allowed set",
            )

    def _log_blocked(self, prefix: str, reason: str) -> None:
        logger.warning(f"CONFIG_RESOLVER: BLOCKED prefix {prefix!r} - {reason}")
