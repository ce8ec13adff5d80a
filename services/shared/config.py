"""
Console configuration, read from the environment.

  SQS_ENDPOINT_URL / AWS_ENDPOINT_URL   provider endpoint (unset -> real AWS)
  AWS_REGION / AWS_DEFAULT_REGION       region (default us-east-1)
  AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_SESSION_TOKEN
  SQS_CONNECT_TIMEOUT                   seconds (default 5)
  SQS_READ_TIMEOUT                      seconds (default 30, above the 20s long poll)
  SQS_MAX_ATTEMPTS                      botocore attempts (default 1: no retries)
"""
from __future__ import annotations

import os
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_REGION = "us-east-1"


class ConsoleSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    endpoint_url: str | None = None
    region: str = DEFAULT_REGION
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None
    connect_timeout: int = Field(default=5, gt=0)
    read_timeout: int = Field(default=30, gt=0)
    max_attempts: int = Field(default=1, ge=1)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ConsoleSettings":
        env = os.environ if environ is None else environ
        return cls(
            endpoint_url=_first(env, "SQS_ENDPOINT_URL", "AWS_ENDPOINT_URL"),
            region=_first(env, "AWS_REGION", "AWS_DEFAULT_REGION") or DEFAULT_REGION,
            access_key_id=_first(env, "AWS_ACCESS_KEY_ID"),
            secret_access_key=_first(env, "AWS_SECRET_ACCESS_KEY"),
            session_token=_first(env, "AWS_SESSION_TOKEN"),
            connect_timeout=_int(env, "SQS_CONNECT_TIMEOUT", 5),
            read_timeout=_int(env, "SQS_READ_TIMEOUT", 30),
            max_attempts=_int(env, "SQS_MAX_ATTEMPTS", 1),
        )

    @property
    def is_local(self) -> bool:
        return bool(self.endpoint_url)


def _first(env: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = (env.get(name) or "").strip()
        if value:
            return value
    return None


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable '{name}' must be an integer, got {raw!r}") from None
