"""Environment-driven settings for the Privy and Stacks clients."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, MutableMapping, Optional

from dotenv import dotenv_values

from .stacks import resolve_api_url

DEFAULT_PRIVY_API_URL = "https://api.privy.io"


@dataclass(frozen=True)
class PrivySettings:
    """Credentials used for Privy's server wallet API."""

    app_id: str
    app_secret: str
    authorization_key: Optional[str] = None
    wallet_owner_id: Optional[str] = None
    api_url: str = DEFAULT_PRIVY_API_URL


def _load_env_file(env: MutableMapping[str, str], path: Path = Path(".env")) -> None:
    """Populate ``env`` from a ``.env`` file without overriding existing keys."""

    if not path.is_file():
        return
    for key, value in dotenv_values(path).items():
        if key and value is not None and key not in env:
            env[key] = value


def _get_env() -> MutableMapping[str, str]:
    """Expose ``os.environ`` separately to simplify testing."""

    env = os.environ
    _load_env_file(env)
    return env


def _first(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value and value.strip():
            return value.strip()
    return None


def load_privy_settings(env: Mapping[str, str] | None = None) -> PrivySettings:
    """Return Privy settings resolved from ``env``.

    Raises
    ------
    RuntimeError
        If the app id or app secret is missing.
    """

    if env is None:
        env = _get_env()

    app_id = _first(env, "PRIVY_APP_ID", "NEXT_PUBLIC_PRIVY_APP_ID")
    app_secret = _first(env, "PRIVY_APP_SECRET")
    if not app_id or not app_secret:
        raise RuntimeError("Set PRIVY_APP_ID and PRIVY_APP_SECRET before calling the Privy wallet API.")

    return PrivySettings(
        app_id=app_id,
        app_secret=app_secret,
        authorization_key=_first(env, "PRIVY_AUTHORIZATION_KEY", "QUORUMS_PRIVATE_KEY"),
        wallet_owner_id=_first(env, "PRIVY_WALLET_OWNER_ID"),
        api_url=(_first(env, "PRIVY_API_URL") or DEFAULT_PRIVY_API_URL).rstrip("/"),
    )


def resolve_stacks_api_url(network: str, env: Mapping[str, str] | None = None) -> str:
    """Return ``STACKS_API_URL`` when set, otherwise the default for ``network``."""

    if env is None:
        env = _get_env()
    default = resolve_api_url(network)
    return (_first(env, "STACKS_API_URL") or default).rstrip("/")


__all__ = [
    "DEFAULT_PRIVY_API_URL",
    "PrivySettings",
    "load_privy_settings",
    "resolve_stacks_api_url",
]
