import sys
from pathlib import Path

from loguru import logger

AUDIT_LOG_NAME = "audit.log"

# Records bound with audit=True carry the chronological event log.
audit_logger = logger.bind(audit=True)


def _is_audit(record) -> bool:
    return record["extra"].get("audit", False)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Path = Path("results/logs"),
    audit: bool = True,
) -> None:
    """
    Configure loguru sinks for a backtest run.

    Sinks:
    - stderr, coloured, at log_level
    - backtester.log, rotating, at log_level
    - audit.log, one file per run, event lines only (when audit is set)
    """
    logger.remove()

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "backtester.log"

    stderr_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{module}</cyan> | "
        "{message}"
    )

    file_format = (
        "{time:YYYY-MM-DD HH:mm:ss} | "
        "{level: <8} | "
        "{module} | "
        "{message}"
    )

    logger.add(
        sys.stderr,
        format=stderr_format,
        level=log_level,
        colorize=True,
    )

    logger.add(
        log_file,
        format=file_format,
        level=log_level,
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        colorize=False,
    )

    if audit:
        logger.add(
            log_dir / AUDIT_LOG_NAME,
            format="{message}",
            level="INFO",
            filter=_is_audit,
            mode="w",
            colorize=False,
        )

    logger.debug(f"Logging initialized at {log_level} level, writing to {log_dir}")
