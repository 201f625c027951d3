"""
Credential token substitution for connection parameters.

Parameter values may reference tokens such as ${GUAC_USERNAME}. Defined
tokens are replaced, undefined ones are left untouched, and $${NAME}
escapes to a literal ${NAME}.
"""
import re
from datetime import datetime
from typing import Callable, Mapping, Optional

from ..core.profiles import ConnectionProfile, ProfileSet

USERNAME_TOKEN = "GUAC_USERNAME"
PASSWORD_TOKEN = "GUAC_PASSWORD"
CLIENT_ADDRESS_TOKEN = "GUAC_CLIENT_ADDRESS"
CLIENT_HOSTNAME_TOKEN = "GUAC_CLIENT_HOSTNAME"
DATE_TOKEN = "GUAC_DATE"
TIME_TOKEN = "GUAC_TIME"

# Optional leading "$" marks an escaped token
TOKEN_PATTERN = re.compile(r"(\$?)\$\{([A-Za-z0-9_]+)\}")


class TokenFilter:
    """Replaces ${NAME} tokens in strings using a token table."""

    def __init__(self, tokens: Optional[Mapping[str, str]] = None):
        self._tokens: dict[str, str] = dict(tokens or {})

    def set_token(self, name: str, value: str) -> None:
        self._tokens[name] = value

    def get_token(self, name: str) -> Optional[str]:
        return self._tokens.get(name)

    @property
    def tokens(self) -> dict[str, str]:
        return dict(self._tokens)

    def filter(self, value: str) -> str:
        def _replace(match: re.Match) -> str:
            escape, name = match.group(1), match.group(2)
            if escape:
                return match.group(0)[1:]
            replacement = self._tokens.get(name)
            if replacement is None:
                return match.group(0)
            return replacement

        return TOKEN_PATTERN.sub(_replace, value)

    def filter_values(self, parameters: Mapping[str, str]) -> dict[str, str]:
        """Return a copy of parameters with every value filtered."""
        return {key: self.filter(value) for key, value in parameters.items()}

    def filter_profiles(self, profiles: ProfileSet) -> dict[str, ConnectionProfile]:
        """Return new profiles with filtered parameters. Inputs are not modified."""
        return {
            name: profile.with_parameters(self.filter_values(profile.parameters))
            for name, profile in profiles.items()
        }


def add_standard_tokens(
    token_filter: TokenFilter,
    username: Optional[str] = None,
    password: Optional[str] = None,
    remote_address: Optional[str] = None,
    remote_hostname: Optional[str] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> TokenFilter:
    """
    Add the standard credential tokens to a filter.

    Tokens for credentials that are absent are not defined, so their
    placeholders survive substitution.
    """
    if username:
        token_filter.set_token(USERNAME_TOKEN, username)
    if password:
        token_filter.set_token(PASSWORD_TOKEN, password)
    if remote_address:
        token_filter.set_token(CLIENT_ADDRESS_TOKEN, remote_address)
    if remote_hostname:
        token_filter.set_token(CLIENT_HOSTNAME_TOKEN, remote_hostname)

    now = clock()
    token_filter.set_token(DATE_TOKEN, now.strftime("%Y%m%d"))
    token_filter.set_token(TIME_TOKEN, now.strftime("%H%M%S"))
    return token_filter
