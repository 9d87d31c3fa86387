from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import tomllib

from ..core.vision.config_defaults import (
    READY_BACKOFF,
    READY_MAX_INTERVAL_S,
    READY_POLL_INTERVAL_S,
    READY_TIMEOUT_S,
    SETTLE_DELAY_S,
)

CONFIG_PATH = Path(__file__).with_name("config.toml")


@dataclass
class ExecutorConfig:
    """Configuration for the task executor."""
    settle_delay: float = SETTLE_DELAY_S


@dataclass
class BackendConfig:
    """Readiness polling of the image backend."""
    poll_interval: float = READY_POLL_INTERVAL_S
    backoff: float = READY_BACKOFF
    max_interval: float = READY_MAX_INTERVAL_S
    ready_timeout: float = READY_TIMEOUT_S


@dataclass
class LoggingConfig:
    """Global logging configuration."""
    enable: bool = True
    config: str = ""  # path to a logging JSON; empty uses the bundled one


@dataclass
class AppConfig:
    """Top-level application configuration."""
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    vision_config: str = ""  # path to vision YAML; empty uses the bundled one


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load configuration from ``config.toml`` with sensible defaults."""

    cfg_path = Path(path) if path is not None else CONFIG_PATH
    data = {}
    if cfg_path.exists():
        with cfg_path.open("rb") as fh:
            data = tomllib.load(fh)

    executor_defaults = ExecutorConfig()
    executor_data = data.get("executor", {})
    executor = ExecutorConfig(
        settle_delay=float(executor_data.get("settle_delay", executor_defaults.settle_delay)),
    )

    backend_defaults = BackendConfig()
    backend_data = data.get("backend", {})
    backend = BackendConfig(
        poll_interval=float(backend_data.get("poll_interval", backend_defaults.poll_interval)),
        backoff=float(backend_data.get("backoff", backend_defaults.backoff)),
        max_interval=float(backend_data.get("max_interval", backend_defaults.max_interval)),
        ready_timeout=float(backend_data.get("ready_timeout", backend_defaults.ready_timeout)),
    )

    logging_defaults = LoggingConfig()
    logging_data = data.get("logging", {})
    logging_cfg = LoggingConfig(
        enable=bool(logging_data.get("enable", logging_defaults.enable)),
        config=str(logging_data.get("config", logging_defaults.config)),
    )

    vision_config = str(data.get("vision", {}).get("config", ""))

    return AppConfig(
        executor=executor,
        backend=backend,
        logging=logging_cfg,
        vision_config=vision_config,
    )
