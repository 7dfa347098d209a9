import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import Config
from .constants import APP_NAME, LOG_FILE
from .errors import ToolkitError
from .sync import synchronize_configured
from .system import SystemStrategy, require_admin

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


def setup_logging(
    interactive: bool, config: Config, log_file: Path | None = LOG_FILE
) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout, otherwise to stderr
                            (captured by Task Scheduler history).
        config (Config): Supplies the log rotation size.
        log_file (Path | None): Rotating log file shared by both modes.
                                None disables file logging.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(sys.stdout if interactive else sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file is None:
        return

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=config.limits.max_log_size,
            backupCount=5,
            encoding="utf-8",
        )
    except OSError as e:
        logger.warning(f"Could not open log file {log_file}: {e}")
        return
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def run_startup(config: Config, strategy: SystemStrategy | None = None) -> int:
    """Runs one unattended synchronization.

    Missing privilege is the only fatal condition. Every sync failure is
    logged at WARNING and the run still exits 0 so Task Scheduler does not
    report a failed task for a transient problem.

    Args:
        config (Config): The merged configuration.
        strategy (SystemStrategy | None): Platform seam for the privilege check.

    Returns:
        int: The process exit code.
    """
    try:
        require_admin(strategy)
    except ToolkitError as e:
        logger.critical(f"FATAL: {e}")
        return 1

    location = config.repository.location()
    logger.info(
        f"STARTUP: Updating {location.local_path} from "
        f"{location.remote_url} ({location.branch})"
    )

    try:
        result = synchronize_configured(config, suppress_prompts=True)
    except ToolkitError as e:
        logger.warning(f"UPDATE FAILED [{e.kind.value}]: {e}")
        return 0
    except Exception:
        logger.warning("UPDATE FAILED [unexpected]", exc_info=True)
        return 0

    if result.is_offline:
        logger.warning("OFFLINE: Remote unreachable (offline). Update skipped.")
    else:
        logger.info(f"STARTUP: Done ({result.action.value}).")
    return 0
