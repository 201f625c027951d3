"""
Core package: config file resolution, XML parsing and writing.
"""
from .config_parser import ConfigDocumentParser, parse_config_file
from .config_resolver import ConfigFileResolver, build_identity_prefix
from .errors import (
    ConfigFileNotFoundError,
    ConfigReadError,
    DuplicateProfileError,
    InvalidIdentifierError,
    MissingAttributeError,
    NestedConfigError,
    OrphanParameterError,
    UserFilesConfigError,
    XmlSyntaxError,
)
from .profiles import ConnectionProfile, ParseResult

__all__ = [
    "ConfigDocumentParser",
    "ConfigFileNotFoundError",
    "ConfigFileResolver",
    "ConfigReadError",
    "ConnectionProfile",
    "DuplicateProfileError",
    "InvalidIdentifierError",
    "MissingAttributeError",
    "NestedConfigError",
    "OrphanParameterError",
    "ParseResult",
    "UserFilesConfigError",
    "XmlSyntaxError",
    "build_identity_prefix",
    "parse_config_file",
]
