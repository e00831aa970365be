"""Runtime configuration for the bridge.

Values come from the process environment, optionally seeded from a ``.env``
file next to the working directory. The webhook link itself is not part of
these settings; it is written by ``/init`` and read through a link store.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from core.errors import ConfigurationError


ATTACH_MODES = ("fail_fast", "best_effort")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BridgeSettings:
    """Settings for the API server and the document pipeline."""
    base_path: str = "/gch_robs_itcomed"
    port: int = 5682
    env_file: str = ".env"

    # Document defaults
    spa_entity_type_id: int = 1068
    responsible_id: int = 1
    currency: str = "KZT"

    # Element attachment
    attach_mode: str = "fail_fast"
    attach_concurrency: int = 10

    # Remote calls
    bx_timeout_seconds: float = 30.0

    # /init rate limit
    init_rate_limit: int = 30
    init_rate_window_seconds: float = 60.0

    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self):
        if self.attach_mode not in ATTACH_MODES:
            raise ConfigurationError(
                f"ATTACH_MODE must be one of {', '.join(ATTACH_MODES)}, got {self.attach_mode!r}"
            )
        if self.attach_concurrency < 1:
            raise ConfigurationError("ATTACH_CONCURRENCY must be at least 1")
        if self.spa_entity_type_id <= 0:
            raise ConfigurationError("SPA_ENTITY_TYPE_ID must be a positive integer")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "BridgeSettings":
        """Build settings from the environment.

        Args:
            env_file: Path of the dotenv file to load first (default: ENV_FILE or ".env")
        """
        env_path = Path(env_file or os.getenv("ENV_FILE", ".env"))
        if env_path.exists():
            load_dotenv(env_path)

        return cls(
            base_path=os.getenv("BASE_PATH", "/gch_robs_itcomed").rstrip("/"),
            port=_int_env("PORT", 5682),
            env_file=str(env_path),
            spa_entity_type_id=_int_env("SPA_ENTITY_TYPE_ID", 1068),
            responsible_id=_int_env("RESPONSIBLE_ID", 1),
            currency=os.getenv("CURRENCY", "KZT"),
            attach_mode=os.getenv("ATTACH_MODE", "fail_fast").strip().lower(),
            attach_concurrency=_int_env("ATTACH_CONCURRENCY", 10),
            bx_timeout_seconds=_float_env("BX_TIMEOUT_SECONDS", 30.0),
            init_rate_limit=_int_env("INIT_RATE_LIMIT", 30),
            init_rate_window_seconds=_float_env("INIT_RATE_WINDOW_SECONDS", 60.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_bool_env("LOG_JSON", False),
        )
