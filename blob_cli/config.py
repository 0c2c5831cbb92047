from __future__ import annotations

import os
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError

TOKEN_VAR = "BLOB_READ_WRITE_TOKEN"
DEFAULT_API_URL = "https://blob.vercel-storage.com"

_DEFAULTS = {
    "CONCURRENCY": 1,
    "MAX_RETRIES": 3,
    "RETRY_BASE_DELAY": 0.8,
    "CONNECTION_TIMEOUT": 30,
    "READ_TIMEOUT": 120,
}


class Config:
    """Runtime settings, resolved once and handed to the orchestrators."""

    def __init__(self, env: Mapping[str, str]) -> None:
        self.token: Optional[str] = (env.get(TOKEN_VAR) or "").strip() or None
        self.api_url: str = (
            env.get("VERCEL_BLOB_API_URL") or DEFAULT_API_URL
        ).rstrip("/")
        self.concurrency: int = _int_setting(env, "CONCURRENCY", minimum=1)
        self.max_retries: int = _int_setting(env, "MAX_RETRIES", minimum=0)
        self.retry_base_delay: float = _float_setting(env, "RETRY_BASE_DELAY")
        self.connection_timeout: float = _float_setting(env, "CONNECTION_TIMEOUT")
        self.read_timeout: float = _float_setting(env, "READ_TIMEOUT")
        self.log_path: Optional[str] = env.get("LOG_PATH") or None

        if not self.api_url.startswith(("https://", "http://")):
            raise ConfigurationError(
                f"VERCEL_BLOB_API_URL must be an http(s) URL. Got '{self.api_url}'.",
                {"setting": "VERCEL_BLOB_API_URL"},
            )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Config":
        """Build a Config from ``env``, or from the process environment.

        When reading the process environment, a ``.env`` file found from the
        current working directory upwards is loaded first. Variables already
        set in the environment take precedence over the file.
        """
        if env is None:
            load_dotenv(find_dotenv(usecwd=True))
            env = os.environ
        return cls(env)

    def require_token(self) -> str:
        if not self.token:
            raise ConfigurationError(
                f"Blob token is missing. Please set the {TOKEN_VAR} environment variable.",
                {"setting": TOKEN_VAR},
            )
        return self.token


def _int_setting(env: Mapping[str, str], name: str, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return int(_DEFAULTS[name])
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer. Got '{raw}'.", {"setting": name}
        )
    if value < minimum:
        raise ConfigurationError(
            f"{name} must be at least {minimum}. Got {value}.", {"setting": name}
        )
    return value


def _float_setting(env: Mapping[str, str], name: str) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return float(_DEFAULTS[name])
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number. Got '{raw}'.", {"setting": name}
        )
    if value < 0:
        raise ConfigurationError(
            f"{name} must not be negative. Got {value}.", {"setting": name}
        )
    return value
