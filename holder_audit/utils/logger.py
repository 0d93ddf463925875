import os
import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


def setup_logger(
    *,
    json_logs: bool = False,
    level: str = "INFO",
    log_dir: str | None = "logs",
    retention_days: int = 7,
) -> None:
    """Configure loguru for the audit engine.

    Console level follows LOG_LEVEL (default: INFO). The daily file sink
    always captures DEBUG so a failed audit can be replayed from its
    [HELIUS]/[PRICE]/[DEDUP] lines; log_dir=None disables it.
    """
    console_level = os.getenv("LOG_LEVEL", level).upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stderr, serialize=True, level=console_level)
    else:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=console_level, colorize=True)

    if log_dir is None:
        return
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    logger.add(
        str(Path(log_dir) / "holder_audit_{time:YYYY-MM-DD}.log"),
        rotation="50 MB",
        retention=f"{retention_days} days",
        compression="gz",
        level="DEBUG",
        serialize=json_logs,
    )
