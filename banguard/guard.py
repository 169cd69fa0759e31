from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional

from flask import current_app
from pydantic import BaseModel, Field, PrivateAttr, field_validator


logger = logging.getLogger(__name__)


class BanFileError(OSError):
    """The ban file could not be written; in-memory state is ahead of disk."""


class BanState(BaseModel):
    """Failure counters and ban expirations keyed by IP.

    Guards sharing one state also share its lock.
    """

    failures: Dict[str, int] = Field(default_factory=dict)
    bans: Dict[str, float] = Field(default_factory=dict)

    _lock = PrivateAttr(default_factory=threading.RLock)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def replace_with(self, other: 'BanState') -> None:
        self.failures.clear()
        self.failures.update(other.failures)
        self.bans.clear()
        self.bans.update(other.bans)


class GuardSettings(BaseModel):
    ban_after: int = Field(4, ge=1)
    ban_duration: int = Field(1800, ge=0)
    trusted_proxies: FrozenSet[str] = frozenset()
    ban_file: Path

    @field_validator('trusted_proxies', mode='before')
    @classmethod
    def _split_proxies(cls, value):
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = value.split(',')
        return frozenset(p.strip() for p in value if p and p.strip())

    @classmethod
    def from_config(cls, config: Mapping) -> 'GuardSettings':
        """Build settings from Flask-style config keys.

        SECURITY_BAN_AFTER, SECURITY_BAN_DURATION, SECURITY_TRUSTED_PROXIES
        and RESOURCE_BAN_FILE map to security.ban_after, security.ban_duration,
        security.trusted_proxies and resource.ban_file.
        """
        return cls(
            ban_after=config.get('SECURITY_BAN_AFTER', 4),
            ban_duration=config.get('SECURITY_BAN_DURATION', 1800),
            trusted_proxies=config.get('SECURITY_TRUSTED_PROXIES'),
            ban_file=config['RESOURCE_BAN_FILE'],
        )


class BanGuard:
    """Tracks failed logins per client IP and bans repeat offenders."""

    def __init__(
        self,
        state: BanState,
        settings: GuardSettings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.state = state
        self.settings = settings
        self._clock = clock
        self._load()

    # -- persistence --------------------------------------------------------

    def _load(self) -> None:
        path = self.settings.ban_file
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            logger.debug('No ban file at %s, starting clean', path)
            return
        except OSError as exc:
            logger.warning('Could not read ban file %s: %s', path, exc)
            self._reset()
            return
        try:
            loaded = BanState.model_validate_json(raw)
        except ValueError as exc:
            # ValidationError and undecodable bytes alike
            logger.warning('Discarding malformed ban file %s: %s', path, exc)
            self._reset()
            return
        with self.state.lock:
            self.state.replace_with(loaded)

    def _reset(self) -> None:
        with self.state.lock:
            self.state.replace_with(BanState())

    def _save(self) -> None:
        """Rewrite the whole ban file. Caller holds the state lock."""
        path = self.settings.ban_file
        payload = {'failures': dict(self.state.failures), 'bans': dict(self.state.bans)}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix='.ipbans-', suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, indent=2, sort_keys=True)
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as exc:
            raise BanFileError(f'could not write ban file {path}: {exc}') from exc

    # -- request handling ---------------------------------------------------

    def resolve_client_ip(self, environ: Mapping) -> str:
        """Return the IP a request is attributed to.

        The forwarded-for header is only honoured when the direct peer is a
        trusted proxy. Within a chain, trusted entries are skipped and the
        right-most remaining one is the client.
        """
        remote = environ.get('REMOTE_ADDR', '')
        if remote not in self.settings.trusted_proxies:
            return remote
        forwarded = environ.get('HTTP_X_FORWARDED_FOR')
        if not forwarded:
            return remote
        chain = [
            ip.strip() for ip in forwarded.split(',')
            if ip.strip() and ip.strip() not in self.settings.trusted_proxies
        ]
        return chain[-1] if chain else remote

    def handle_failed_login(self, environ: Mapping) -> None:
        ip = self.resolve_client_ip(environ)
        with self.state.lock:
            count = self.state.failures.get(ip, 0) + 1
            self.state.failures[ip] = count
            if count >= self.settings.ban_after:
                self.state.bans[ip] = self._clock() + self.settings.ban_duration
                logger.warning(
                    'IP address banned from login: %s (%d failures, %ds)',
                    ip, count, self.settings.ban_duration,
                )
            self._save()

    def handle_successful_login(self, environ: Mapping) -> None:
        ip = self.resolve_client_ip(environ)
        with self.state.lock:
            self.state.failures.pop(ip, None)
            self.state.bans.pop(ip, None)
            self._save()

    def can_login(self, environ: Mapping) -> bool:
        ip = self.resolve_client_ip(environ)
        with self.state.lock:
            expiry = self.state.bans.get(ip)
        return expiry is None or expiry <= self._clock()

    # -- introspection and maintenance ---------------------------------------

    def failure_count(self, ip: str) -> int:
        with self.state.lock:
            return self.state.failures.get(ip, 0)

    def ban_expiry(self, ip: str) -> Optional[float]:
        with self.state.lock:
            return self.state.bans.get(ip)

    def purge_expired(self) -> List[str]:
        """Lift every ban whose expiry has passed and forget its failures."""
        now = self._clock()
        with self.state.lock:
            lifted = sorted(ip for ip, expiry in self.state.bans.items() if expiry <= now)
            for ip in lifted:
                del self.state.bans[ip]
                self.state.failures.pop(ip, None)
            if lifted:
                self._save()
        if lifted:
            logger.info('Lifted %d expired ban(s)', len(lifted))
        return lifted


def get_guard() -> BanGuard:
    """Return the guard attached to the current app by create_app."""
    return current_app.extensions['ban_guard']
