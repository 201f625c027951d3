"""
Services package for userfiles-auth.

Contains the profile lookup orchestration, token substitution and the
authentication provider adapter.
"""
from .auth_provider import AuthenticatedUser, Credentials, UserContext, UserFilesAuthProvider
from .config_service import LookupStatus, ProfileConfigService, ProfileLookup
from .token_filter import TokenFilter, add_standard_tokens

__all__ = [
    "AuthenticatedUser",
    "Credentials",
    "LookupStatus",
    "ProfileConfigService",
    "ProfileLookup",
    "TokenFilter",
    "UserContext",
    "UserFilesAuthProvider",
    "add_standard_tokens",
]
