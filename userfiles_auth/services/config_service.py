"""
Profile lookup service for user-files authentication.

Orchestrates one lookup:

    resolve path -> exists? -> cached? -> parse -> expiry policy -> self-delete

The whole sequence runs under an exclusive lock keyed by the resolved path,
so a self-deleting document is read by exactly one caller and no caller
trips over a file that vanished between its existence check and its read.

Parsed documents are cached per path and invalidated when the file's
modification time, size or inode changes. Self-deleting documents are
never cached. Expiry is evaluated on every lookup, cached or not.
"""
import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional

from ..core.config_parser import parse_config_file
from ..core.config_resolver import ConfigFileResolver
from ..core.errors import ConfigFileNotFoundError
from ..core.profiles import EMPTY_PROFILES, ParseResult, ProfileSet

logger = logging.getLogger(__name__)


class LookupStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


@dataclass(frozen=True)
class ProfileLookup:
    """Result of a profile lookup for one identity."""

    status: LookupStatus
    path: Path
    profiles: ProfileSet = field(default_factory=lambda: EMPTY_PROFILES)
    valid_to: Optional[datetime] = None
    deleted: bool = False

    @property
    def authorized(self) -> bool:
        return self.status is LookupStatus.OK


@dataclass(frozen=True)
class FileSignature:
    """Identity of a file's content as seen by stat()."""

    mtime_ns: int
    size: int
    inode: int

    @classmethod
    def from_stat(cls, stat_result: os.stat_result) -> "FileSignature":
        return cls(
            mtime_ns=stat_result.st_mtime_ns,
            size=stat_result.st_size,
            inode=stat_result.st_ino,
        )


@dataclass(frozen=True)
class _CacheEntry:
    signature: FileSignature
    result: ParseResult


class ProfileCache:
    """Parsed documents keyed by resolved path, valid while the file is unchanged."""

    def __init__(self) -> None:
        self._entries: dict[Path, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, path: Path, signature: FileSignature) -> Optional[ParseResult]:
        with self._lock:
            entry = self._entries.get(path)
        if entry is None or entry.signature != signature:
            return None
        return entry.result

    def put(self, path: Path, signature: FileSignature, result: ParseResult) -> None:
        with self._lock:
            self._entries[path] = _CacheEntry(signature=signature, result=result)

    def invalidate(self, path: Path) -> None:
        with self._lock:
            self._entries.pop(path, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class PathLockRegistry:
    """
    Hands out one lock per resolved path.

    Entries are reference-counted and dropped when the last holder releases
    the path, so the registry only holds paths with a lookup in flight.
    """

    def __init__(self) -> None:
        self._locks: dict[Path, _LockEntry] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, path: Path) -> Iterator[None]:
        """Hold the path's lock for the duration of the with block."""
        with self._guard:
            entry = self._locks.get(path)
            if entry is None:
                entry = _LockEntry()
                self._locks[path] = entry
            entry.holders += 1

        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[path]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class ProfileConfigService:
    """
    Look up the profiles an identity prefix is authorized to use.

    Raises the core's UserFilesConfigError subclasses for invalid prefixes
    and unreadable or malformed documents. Missing and expired documents are
    not errors; they are reported through ProfileLookup.status.
    """

    def __init__(
        self,
        home_dir: Path,
        cache_enabled: bool = True,
        strict_duplicates: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.resolver = ConfigFileResolver(home_dir)
        self.cache_enabled = cache_enabled
        self.strict_duplicates = strict_duplicates
        self.cache = ProfileCache()
        self._locks = PathLockRegistry()
        self._clock = clock

    def load_profiles(self, prefix: Optional[str] = None) -> ProfileLookup:
        """
        Resolve, parse and apply expiry/delete policy for a prefix.

        Args:
            prefix: Identity prefix, or None for the default file

        Returns:
            ProfileLookup with status ok, not_found or expired

        Raises:
            InvalidIdentifierError: If the prefix is rejected
            ConfigReadError, XmlSyntaxError, NestedConfigError,
            OrphanParameterError, MissingAttributeError: If the file is
            unreadable or invalid
        """
        path = self.resolver.resolve(prefix)

        with self._locks.hold(path):
            try:
                signature = FileSignature.from_stat(path.stat())
            except FileNotFoundError:
                self.cache.invalidate(path)
                logger.debug(f'CONFIG_SERVICE: No configuration file "{path}"')
                return ProfileLookup(status=LookupStatus.NOT_FOUND, path=path)

            result = self.cache.get(path, signature) if self.cache_enabled else None
            if result is None:
                logger.debug(f'CONFIG_SERVICE: Parse configuration file "{path}".')
                try:
                    result = parse_config_file(path, strict_duplicates=self.strict_duplicates)
                except ConfigFileNotFoundError:
                    # Removed between stat and open by another process
                    self.cache.invalidate(path)
                    return ProfileLookup(status=LookupStatus.NOT_FOUND, path=path)

                if self.cache_enabled and not result.delete_after_read:
                    self.cache.put(path, signature, result)
            else:
                logger.debug(f'CONFIG_SERVICE: Using cached configuration "{path}"')

            logger.debug(
                f"CONFIG_SERVICE: getDeleteConfig: "
                f"{'Yes' if result.delete_after_read else 'No'}"
            )
            deleted = False
            if result.delete_after_read:
                deleted = self._delete_config_file(path)

        if result.is_expired(self._clock()):
            logger.warning(
                f'CONFIG_SERVICE: Ignore config: "{path}" because its valid_to '
                f'"{result.valid_to.isoformat()}" is outdated.'
            )
            return ProfileLookup(
                status=LookupStatus.EXPIRED,
                path=path,
                valid_to=result.valid_to,
                deleted=deleted,
            )

        return ProfileLookup(
            status=LookupStatus.OK,
            path=path,
            profiles=result.profiles,
            valid_to=result.valid_to,
            deleted=deleted,
        )

    def _delete_config_file(self, path: Path) -> bool:
        """Best-effort removal of a self-deleting document."""
        self.cache.invalidate(path)
        try:
            path.unlink()
        except OSError as e:
            logger.warning(f'CONFIG_SERVICE: Error deleting config file: "{path}": "{e}"')
            return False
        logger.info(f'CONFIG_SERVICE: Deleted one-shot configuration "{path}"')
        return True
