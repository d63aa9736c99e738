"""
Configuration for vigilia.

Values come from keyword arguments, then the environment, then
~/.vigilia/.env (loaded with python-dotenv), then the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .custodia.channel import BackpressurePolicy

VIGILIA_DIR = Path.home() / ".vigilia"
VIGILIA_ENV = VIGILIA_DIR / ".env"

DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_POLL_INTERVAL = 0.1  # seconds
DEFAULT_QUEUE_SIZE = 16
DEFAULT_DELIVERY_TIMEOUT = 1.0  # seconds, BLOCK policy only
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds


def load_env(env_path: Optional[Path] = None) -> None:
    """Load ~/.vigilia/.env (or `env_path`) without overriding the environment."""
    env_path = env_path or VIGILIA_ENV
    if env_path.exists():
        load_dotenv(env_path, override=False)


def get_rpc_url() -> str:
    """Get the RPC URL from environment or default."""
    return os.environ.get("VIGILIA_RPC_URL", DEFAULT_RPC_URL)


def get_request_timeout() -> float:
    return float(os.environ.get("VIGILIA_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT)))


def _env_float(name: str) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class WatchConfig:
    """
    Poll engine settings.

    Attributes:
        poll_interval: Seconds between polls of one filter
        queue_size: Buffered items per consumer
        backpressure: What to do when a consumer's buffer is full
        delivery_timeout: Max seconds to wait for room under BLOCK
        poll_timeout: Per-poll request timeout (None = transport default)
    """

    poll_interval: float = DEFAULT_POLL_INTERVAL
    queue_size: int = DEFAULT_QUEUE_SIZE
    backpressure: BackpressurePolicy = BackpressurePolicy.BLOCK
    delivery_timeout: float = DEFAULT_DELIVERY_TIMEOUT
    poll_timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")
        if self.queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {self.queue_size}")
        if self.delivery_timeout < 0:
            raise ValueError(f"delivery_timeout must be >= 0, got {self.delivery_timeout}")
        if self.poll_timeout is not None and self.poll_timeout <= 0:
            raise ValueError(f"poll_timeout must be > 0, got {self.poll_timeout}")
        # accept plain strings ("drop_oldest") as well as enum members
        object.__setattr__(self, "backpressure", BackpressurePolicy(self.backpressure))

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None, **overrides) -> "WatchConfig":
        load_env(env_path)
        values: dict = {}

        interval = _env_float("VIGILIA_POLL_INTERVAL")
        if interval is not None:
            values["poll_interval"] = interval

        queue_size = os.environ.get("VIGILIA_QUEUE_SIZE")
        if queue_size:
            try:
                values["queue_size"] = int(queue_size)
            except ValueError as exc:
                raise ValueError(f"VIGILIA_QUEUE_SIZE must be an integer, got {queue_size!r}") from exc

        policy = os.environ.get("VIGILIA_BACKPRESSURE")
        if policy:
            try:
                values["backpressure"] = BackpressurePolicy(policy.strip().lower())
            except ValueError as exc:
                choices = ", ".join(p.value for p in BackpressurePolicy)
                raise ValueError(f"VIGILIA_BACKPRESSURE must be one of {choices}, got {policy!r}") from exc

        delivery_timeout = _env_float("VIGILIA_DELIVERY_TIMEOUT")
        if delivery_timeout is not None:
            values["delivery_timeout"] = delivery_timeout

        poll_timeout = _env_float("VIGILIA_POLL_TIMEOUT")
        if poll_timeout is not None:
            values["poll_timeout"] = poll_timeout

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
