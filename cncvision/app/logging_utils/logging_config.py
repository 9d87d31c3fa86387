import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys
from typing import Optional

CONFIG_PATH = Path(__file__).resolve().parent / "logging_config.json"


def setup_logging(config_path: Optional[Path] = None) -> None:
    """Initialize logging from JSON configuration file."""

    config_path = Path(config_path) if config_path else CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Logging configuration not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # --- Root configuration ---
    root_cfg = config.get("root", {})
    root_level = getattr(logging, root_cfg.get("level", "INFO").upper(), logging.INFO)
    log_file = Path(root_cfg.get("file", "cncvision.log"))
    fmt = root_cfg.get("format", "%(asctime)s [%(levelname)s] [%(name)s] %(message)s")
    max_bytes = root_cfg.get("max_bytes", 1048576)
    backup_count = root_cfg.get("backup_count", 3)
    echo_to_console = bool(root_cfg.get("echo_to_console", False))

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Avoid adding multiple handlers if setup_logging is called more than once
    if not any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers):
        formatter = logging.Formatter(fmt)

        file_handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        # Optional console handler (for debug runs)
        if echo_to_console:
            echo = logging.StreamHandler(sys.stdout)
            echo.setFormatter(formatter)
            root_logger.addHandler(echo)

        # Always ensure CRITICAL and exception messages go to console
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.CRITICAL)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # --- Module-level configuration ---
    modules = config.get("modules", {})
    log_summary = []

    for name, level in modules.items():
        logger = logging.getLogger(name)
        level_upper = str(level).upper().strip()

        if level_upper == "NONE":
            logger.disabled = True
            logger.propagate = False
            log_summary.append(f"{name}: DISABLED")
            continue

        numeric_level = getattr(logging, level_upper, None)
        if isinstance(numeric_level, int):
            logger.setLevel(numeric_level)
            log_summary.append(f"{name}: {level_upper}")
        else:
            logger.setLevel(logging.INFO)
            log_summary.append(f"{name}: INVALID ({level_upper}) -> default=INFO")
            logging.warning("[LOGGING] Invalid level '%s' for module '%s'", level, name)

    # Startup summary
    logging.info("[LOGGING] Configuration loaded from %s", config_path)
    if log_summary:
        logging.info("[LOGGING] Module log levels:")
        for entry in log_summary:
            logging.info("    - %s", entry)
