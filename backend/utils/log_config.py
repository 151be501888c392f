import logging
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level_name: str | None = None) -> None:
    logging.basicConfig(level=(level_name or LOG_LEVEL).upper(), format=LOG_FORMAT)


def resolve_log_path(raw: str, root_dir: Path) -> Path | None:
    raw = raw.strip()
    if not raw:
        return None
    path = Path(raw)
    if not path.is_absolute():
        path = root_dir / path
    return path


def attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    target_logger = logging.getLogger(logger_name)
    # Reloads and repeated setup must not duplicate lines in the file
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
        file_handler.setLevel(logger_level_value)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)
