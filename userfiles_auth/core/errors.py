"""
Error taxonomy for user-files configuration loading.

Every failure while resolving or parsing a config file is raised as a
subclass of UserFilesConfigError so the host adapter can translate them in
one place. None of these are retried.
"""
from pathlib import Path
from typing import Optional


class UserFilesConfigError(Exception):
    """Base class for config resolution and parsing failures."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class InvalidIdentifierError(UserFilesConfigError):
    """Raised when an identity prefix contains characters outside the allowed set."""

    def __init__(self, message: str, prefix: str, reason: str):
        super().__init__(message)
        self.prefix = prefix
        self.reason = reason


class ConfigFileNotFoundError(UserFilesConfigError):
    """Raised when the resolved config file does not exist."""
    pass


class ConfigReadError(UserFilesConfigError):
    """Raised when the config stream cannot be opened or read."""
    pass


class XmlSyntaxError(UserFilesConfigError):
    """Raised on malformed markup or forbidden XML constructs (DTD, entities)."""
    pass


class NestedConfigError(UserFilesConfigError):
    """Raised when a config element opens inside another config element."""
    pass


class OrphanParameterError(UserFilesConfigError):
    """Raised when a param element appears outside any config element."""
    pass


class MissingAttributeError(UserFilesConfigError):
    """Raised when a config element lacks its name or protocol attribute."""

    def __init__(self, message: str, attribute: str, path: Optional[Path] = None):
        super().__init__(message, path=path)
        self.attribute = attribute


class DuplicateProfileError(UserFilesConfigError):
    """Raised in strict mode when two config elements share a name."""

    def __init__(self, message: str, name: str, path: Optional[Path] = None):
        super().__init__(message, path=path)
        self.name = name
