"""Runtime configuration for the permutation service."""

from __future__ import annotations

import os
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from redis.connection import parse_url

from .errors import ConfigurationError

__all__ = ["Settings", "DEFAULT_REQUEST_TIMEOUT"]

DEFAULT_REQUEST_TIMEOUT = 5.0

_ENV_KEYS: Mapping[str, tuple[str, ...]] = {
    "cache_url": ("cacheUrl", "CACHE_URL"),
    "defer_url": ("deferUrl", "DEFER_URL"),
    "request_timeout": ("REQUEST_TIMEOUT",),
}

_REDIS_SCHEMES = ("redis://", "rediss://")


class Settings(BaseModel):
    """Collaborator endpoints and client tuning."""

    model_config = ConfigDict(frozen=True)

    cache_url: str
    defer_url: str
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)

    @field_validator("cache_url", "defer_url")
    @classmethod
    def _strip_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("endpoint must be a non-empty URL")
        return value

    @field_validator("cache_url")
    @classmethod
    def _check_redis_url(cls, value: str) -> str:
        if value.startswith(_REDIS_SCHEMES):
            parse_url(value)
        return value

    @property
    def uses_redis_cache(self) -> bool:
        return self.cache_url.startswith(_REDIS_SCHEMES)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        ``cacheUrl`` and ``deferUrl`` are required (``CACHE_URL`` and
        ``DEFER_URL`` are accepted as well). ``REQUEST_TIMEOUT`` is optional.

        Raises
        ------
        ConfigurationError
            When a required endpoint is missing or a value fails validation.
        """

        environ = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for field_name, keys in _ENV_KEYS.items():
            for key in keys:
                raw = environ.get(key)
                if raw is not None and raw.strip():
                    values[field_name] = raw
                    break

        for required, keys in (
            ("cache_url", _ENV_KEYS["cache_url"]),
            ("defer_url", _ENV_KEYS["defer_url"]),
        ):
            if required not in values:
                raise ConfigurationError(
                    f"The `{keys[0]}` environment variable was not set"
                )

        try:
            return cls.model_validate(values)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid service configuration: {exc}") from exc
