#!/usr/bin/env python3
"""
CLI tool for provisioning user-files connection documents.

Example:

    python -m userfiles_auth.cli.create_config \\
        --username mst_henh --ident 1337 \\
        --profile my-rdp:rdp --param my-rdp.hostname=10.0.0.1 \\
        --param my-rdp.port=3389 --delete
"""
import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import get_home_directory
from ..core.config_parser import parse_valid_to
from ..core.config_resolver import ConfigFileResolver, build_identity_prefix
from ..core.config_writer import write_config_file
from ..core.errors import InvalidIdentifierError
from ..core.profiles import ConnectionProfile

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def parse_profiles(profile_specs: list[str], param_specs: list[str]) -> dict[str, ConnectionProfile]:
    """
    Build profiles from NAME:PROTOCOL and NAME.KEY=VALUE arguments.

    Raises:
        ValueError: On malformed arguments or parameters for unknown profiles
    """
    protocols: dict[str, str] = {}
    for spec in profile_specs:
        name, sep, protocol = spec.rpartition(":")
        if not sep or not name or not protocol:
            raise ValueError(f"Invalid --profile '{spec}', expected NAME:PROTOCOL")
        protocols[name] = protocol

    parameters: dict[str, dict[str, str]] = {name: {} for name in protocols}
    for spec in param_specs:
        target, sep, value = spec.partition("=")
        name, dot, key = target.rpartition(".")
        if not sep or not dot or not name or not key:
            raise ValueError(f"Invalid --param '{spec}', expected NAME.KEY=VALUE")
        if name not in parameters:
            raise ValueError(f"--param '{spec}' refers to unknown profile '{name}'")
        parameters[name][key] = value

    return {
        name: ConnectionProfile(protocol=protocol, parameters=parameters[name])
        for name, protocol in protocols.items()
    }


def create_config(
    home: Path,
    username: str,
    ident: str,
    profiles: dict[str, ConnectionProfile],
    delete: bool = False,
    valid_to: Optional[datetime] = None,
) -> Path:
    """Resolve the identity's config path and write the document."""
    prefix = build_identity_prefix(username, ident)
    path = ConfigFileResolver(home).resolve(prefix)
    return write_config_file(path, profiles, delete=delete, valid_to=valid_to)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Create a user-files connection document")
    parser.add_argument("--home", type=Path, default=None, help="Gateway home directory")
    parser.add_argument("--username", default="", help="Username part of the identity")
    parser.add_argument("--ident", default="", help="Ident/session part of the identity")
    parser.add_argument(
        "--profile", action="append", default=[], required=True,
        help="Connection as NAME:PROTOCOL (repeatable)",
    )
    parser.add_argument(
        "--param", action="append", default=[],
        help="Connection parameter as NAME.KEY=VALUE (repeatable)",
    )
    parser.add_argument("--delete", action="store_true", help="Delete the file after first use")
    parser.add_argument("--valid-to", default=None, help="Expiry timestamp (ISO-8601)")

    args = parser.parse_args(argv)

    try:
        profiles = parse_profiles(args.profile, args.param)
        valid_to = parse_valid_to(args.valid_to) if args.valid_to else None
        path = create_config(
            home=args.home or get_home_directory(),
            username=args.username,
            ident=args.ident,
            profiles=profiles,
            delete=args.delete,
            valid_to=valid_to,
        )
    except (ValueError, InvalidIdentifierError) as e:
        logger.error(f"Failed to create configuration: {e}")
        return 1
    except OSError as e:
        logger.error(f"Failed to write configuration: {e}")
        return 1

    logger.info(f"Configuration written: {path}")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        sys.exit(130)
