"""
Authentication provider adapter for user-files authentication.

Every request is accepted as long as a connection file exists for its
identity and has not expired. The identity comes from the request's
"username" and "ident" parameters:

    ?username=mst_henh&ident=1337  -> <home>/mst_henh_1337_noauth-config.xml
    ?ident=1337                    -> <home>/anonymous_1337_noauth-config.xml
    (neither)                      -> <home>/noauth-config.xml

Profiles are re-read on every authenticate/update call so changes to the
file (or its removal) take effect on the next page load.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Mapping, Optional

from ..core.config_resolver import build_identity_prefix
from ..core.profiles import ConnectionProfile
from .config_service import ProfileConfigService, ProfileLookup
from .token_filter import TokenFilter, add_standard_tokens

logger = logging.getLogger(__name__)

PROVIDER_IDENTIFIER = "userfilesauth"


@dataclass
class Credentials:
    """Credentials and request details supplied by the host."""

    username: str = ""
    password: str = ""
    ident: str = ""
    remote_address: Optional[str] = None
    remote_hostname: Optional[str] = None

    @classmethod
    def from_request_parameters(
        cls,
        parameters: Mapping[str, Optional[str]],
        remote_address: Optional[str] = None,
        remote_hostname: Optional[str] = None,
    ) -> "Credentials":
        """Build credentials from request parameters, treating absent values as empty."""
        return cls(
            username=parameters.get("username") or "",
            password=parameters.get("password") or "",
            ident=parameters.get("ident") or "",
            remote_address=remote_address,
            remote_hostname=remote_hostname,
        )


@dataclass
class AuthenticatedUser:
    """A user authenticated by this provider, with its authorized profiles."""

    identifier: str
    credentials: Credentials
    configurations: dict[str, ConnectionProfile] = field(default_factory=dict)
    provider: Optional["UserFilesAuthProvider"] = None


@dataclass
class UserContext:
    """Per-user view restricted to the authorized profiles."""

    identifier: str
    configurations: dict[str, ConnectionProfile]
    provider: Optional["UserFilesAuthProvider"] = None


class UserFilesAuthProvider:
    """
    Host-facing provider.

    Returns None wherever the host contract expects "not authorized":
    when no config file exists for the identity or when it has expired.
    Core errors (invalid identity, unreadable or malformed file) propagate.
    """

    identifier = PROVIDER_IDENTIFIER

    def __init__(self, service: ProfileConfigService):
        self.service = service

    def lookup(self, credentials: Credentials) -> ProfileLookup:
        prefix = build_identity_prefix(credentials.username, credentials.ident)
        return self.service.load_profiles(prefix)

    def get_authorized_configurations(
        self, credentials: Credentials
    ) -> Optional[dict[str, ConnectionProfile]]:
        """
        Return filtered profiles for the credentials, or None if unauthorized.
        """
        result = self.lookup(credentials)
        if not result.authorized:
            logger.info(
                f"AUTH_PROVIDER: No configuration for '{credentials.username}' "
                f"({result.status.value}): {result.path}"
            )
            return None

        token_filter = add_standard_tokens(
            TokenFilter(),
            username=credentials.username,
            password=credentials.password,
            remote_address=credentials.remote_address,
            remote_hostname=credentials.remote_hostname,
        )
        return token_filter.filter_profiles(result.profiles)

    def authenticate_user(self, credentials: Credentials) -> Optional[AuthenticatedUser]:
        configurations = self.get_authorized_configurations(credentials)
        if configurations is None:
            return None

        if credentials.username:
            identifier = credentials.username
            logger.debug(f"AUTH_PROVIDER: Set username: {identifier}")
        else:
            identifier = str(uuid.uuid4())

        return AuthenticatedUser(
            identifier=identifier,
            credentials=credentials,
            configurations=configurations,
            provider=self,
        )

    def get_user_context(self, user: AuthenticatedUser) -> Optional[UserContext]:
        # Users authenticated here already carry their profiles
        if user.provider is self:
            configurations = user.configurations
        else:
            configurations = self.get_authorized_configurations(user.credentials)
            if configurations is None:
                return None

        return UserContext(
            identifier=user.identifier, configurations=configurations, provider=self
        )

    def update_authenticated_user(
        self, user: AuthenticatedUser, credentials: Credentials
    ) -> Optional[AuthenticatedUser]:
        return self.authenticate_user(credentials)

    def update_user_context(
        self, context: UserContext, user: AuthenticatedUser, credentials: Credentials
    ) -> Optional[UserContext]:
        configurations = self.get_authorized_configurations(credentials)
        if configurations is None:
            return None
        return UserContext(
            identifier=user.identifier, configurations=configurations, provider=self
        )

    def decorate(
        self, context: UserContext, user: AuthenticatedUser, credentials: Credentials
    ) -> UserContext:
        return context

    def redecorate(
        self,
        decorated: UserContext,
        context: UserContext,
        user: AuthenticatedUser,
        credentials: Credentials,
    ) -> UserContext:
        return context

    def shutdown(self) -> None:
        self.service.cache.clear()
