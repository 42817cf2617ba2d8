"""Runtime configuration for the retry reconciler."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CERTS_DIR = Path(
    r"C:\ProgramData\Qlik\Sense\Repository\Exported Certificates\.Local Certificates",
)


@dataclass(slots=True)
class ConnectionSettings:
    """Transport and credential settings for the repository API."""

    request_timeout_seconds: float = 30.0
    certs_dir: Path = DEFAULT_CERTS_DIR
    ntlm_user: str = ""
    ntlm_password: str = ""


@dataclass(slots=True)
class ReconcileSettings:
    """Defaults applied when CLI flags are omitted."""

    default_retries: int = 0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    log_level: str = "WARNING"
    connection: ConnectionSettings = field(default_factory=ConnectionSettings)
    reconcile: ReconcileSettings = field(default_factory=ReconcileSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults suitable for a server-local run."""

        return cls(
            log_level=os.getenv("SET_TASK_RETRIES_LOG_LEVEL", "WARNING").strip().upper(),
            connection=ConnectionSettings(
                request_timeout_seconds=_env_float(
                    "SET_TASK_RETRIES_REQUEST_TIMEOUT_SECONDS",
                    default=30.0,
                ),
                certs_dir=Path(
                    os.getenv("SET_TASK_RETRIES_CERTS_DIR", "").strip() or DEFAULT_CERTS_DIR,
                ),
                ntlm_user=os.getenv("SET_TASK_RETRIES_NTLM_USER", "").strip()
                or _environment_user(),
                ntlm_password=os.getenv("SET_TASK_RETRIES_NTLM_PASSWORD", ""),
            ),
            reconcile=ReconcileSettings(
                default_retries=_env_int("SET_TASK_RETRIES_DEFAULT_RETRIES", default=0),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting is out of range."""

        if self.reconcile.default_retries < 0:
            raise ValueError("SET_TASK_RETRIES_DEFAULT_RETRIES must be >= 0.")
        if self.connection.request_timeout_seconds <= 0:
            raise ValueError("SET_TASK_RETRIES_REQUEST_TIMEOUT_SECONDS must be > 0.")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Invalid SET_TASK_RETRIES_LOG_LEVEL: {self.log_level!r}")


def _environment_user() -> str:
    """Return the calling session's account as ``DOMAIN\\user`` (or bare ``user``)."""

    user = os.getenv("USERNAME") or os.getenv("USER") or ""
    domain = os.getenv("USERDOMAIN", "")
    if domain and user:
        return f"{domain}\\{user}"
    return user


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error
