# solarman_sync/services/credential_cache.py

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta
from typing import Callable, Optional

import requests

from solarman_sync.errors import AuthFailed, ConfigIncomplete, ConnectivityLost
from solarman_sync.models.credential import Credential
from solarman_sync.services.solarman_client import SolarmanAPIClient, is_connectivity_error

DEFAULT_TOKEN_LIFETIME = timedelta(hours=24)

_REQUIRED_FIELDS = (
    ("app_id", "App ID"),
    ("app_secret", "App Secret"),
    ("email", "Email"),
    ("password", "Password"),
)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class CredentialCache:
    """
    Owns the bearer token for one sync engine.

    A token is reused until ``now`` reaches its expiry, which is set a guard
    band short of the lifetime the server grants.
    """

    def __init__(
        self,
        client: SolarmanAPIClient,
        log,
        *,
        guard_band: timedelta = timedelta(minutes=60),
        clock: Optional[Callable[[], datetime]] = None,
        progress=None,
    ):
        self.client = client
        self.log = log
        self.guard_band = guard_band
        self.clock = clock or datetime.now
        self.progress = progress
        self._credential: Optional[Credential] = None

    # ------------------------------------------------------------------
    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def clear(self) -> None:
        self._credential = None

    def _notify(self, message: str) -> None:
        if self.progress is not None:
            self.progress.publish(message, kind="auth")
        self.log.debug(message)

    def _validate(self) -> None:
        cfg = self.client.cfg
        for attr, label in _REQUIRED_FIELDS:
            if not getattr(cfg, attr, None):
                raise ConfigIncomplete(f"{label} is not configured")

    def _expiry(self, now: datetime, payload: dict) -> datetime:
        lifetime = DEFAULT_TOKEN_LIFETIME
        raw = payload.get("expires_in")
        if raw is not None:
            try:
                lifetime = timedelta(seconds=int(raw))
            except (TypeError, ValueError):
                self.log.debug("Ignoring unparseable expires_in=%r", raw)
        usable = lifetime - self.guard_band
        if usable <= timedelta(0):
            usable = lifetime / 2
        return now + usable

    # ------------------------------------------------------------------
    def get_token(self) -> Credential:
        now = self.clock()
        if self._credential is not None and self._credential.is_valid(now):
            self.log.debug("Using cached access token")
            return self._credential

        self._validate()
        self._notify("Requesting access token...")

        try:
            resp = self.client.request_token(hash_password(self.client.cfg.password))
        except requests.RequestException as exc:
            if is_connectivity_error(exc):
                raise ConnectivityLost(f"Network error during authentication: {exc}") from exc
            raise AuthFailed(f"Network error: {exc}") from exc

        payload = resp.payload
        if payload is None:
            raise AuthFailed(
                f"Failed to parse authentication response (HTTP {resp.status_code})",
                status=resp.status_code,
            )
        if not resp.success:
            msg = payload.get("msg") or "Authentication failed"
            raise AuthFailed(f"Authentication failed: {msg}", status=resp.status_code)

        token = payload.get("access_token")
        if not token:
            raise AuthFailed("No access_token in response", status=resp.status_code)

        self._credential = Credential(token=str(token), expires_at=self._expiry(now, payload))
        self._notify("Access token received")
        return self._credential
