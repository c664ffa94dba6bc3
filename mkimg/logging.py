from __future__ import annotations

import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

ENV_LOG_DIR = "MKIMG_LOG_DIR"

# Note: TRACE level already exists in loguru at level 5 (below DEBUG which is 10)
# Subprocess output is logged at TRACE by run_command.


def _should_log_command_output(record) -> bool:
    """Filter captured subprocess output - only show in TRACE mode."""
    tags = record["extra"].get("tags", [])

    if "command" in tags and record["level"].no < logger.level("WARNING").no:
        message = record["message"]
        if message.startswith(("stdout:", "stderr:")):
            return record["level"].no <= logger.level("TRACE").no

    return True


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_dir: Path | None = None,
) -> Logger:
    """
    Setup console logging and an optional build log file.

    Logging Tiers:
    - ERROR: Fatal build failures (the single diagnostic shown on abort)
    - SUCCESS/INFO: Build progress (partitioning, writing, bootsector)
    - DEBUG: Layout details, codec commands
    - TRACE: Captured subprocess output

    Args:
        debug: Enable DEBUG level logging
        trace: Enable TRACE level logging (very verbose)
        log_dir: Directory for ``build.log``; defaults to $MKIMG_LOG_DIR,
            no file sink when neither is set
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "mkimg"})

    if trace:
        console_level = "TRACE"
    elif debug:
        console_level = "DEBUG"
    else:
        console_level = "INFO"

    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        filter=_should_log_command_output,
        colorize=True,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[source]: <8}</cyan> | "
            "{message}"
        ),
    )

    if log_dir is None and os.environ.get(ENV_LOG_DIR):
        log_dir = Path(os.environ[ENV_LOG_DIR])

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "build.log",
            level="TRACE" if trace else "DEBUG",
            rotation="10 MB",
            retention=5,
            backtrace=True,
            diagnose=False,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[source]: <8} | "
                "{extra[job_id]: <15} | "
                "{message}"
            ),
        )

    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking a build
        tags: Tags for filtering (e.g., ["gpt", "codec"])
        source: Source component (e.g., "build", "fat", "lua")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking a long-running operation with automatic timing.

    Logs operation start, completion and failure with duration tracking.

    Args:
        operation: Operation name (e.g., "build")
        **details: Operation-specific details bound to every record

    Yields:
        Logger bound with job_id and operation context

    Example:
        with operation_context("build", image="disk.img") as log:
            log.info("Partitioning...")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.debug(f"{operation.capitalize()} started")

        try:
            yield log
            duration = time.time() - start_time
            log.success(
                f"{operation.capitalize()} completed in {duration:.2f}s"
            )
        except Exception as e:
            duration = time.time() - start_time
            log.debug(
                f"{operation.capitalize()} failed after {duration:.2f}s "
                f"({type(e).__name__})"
            )
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.

    Each factory method returns a logger pre-configured with appropriate
    source and tags for the domain.
    """

    @staticmethod
    def for_build() -> Logger:
        """Logger for the image build pipeline."""
        return get_logger(source="build", tags=["build", "image"])

    @staticmethod
    def for_codec(name: str) -> Logger:
        """Logger for partition table and filesystem codecs."""
        return get_logger(source=name, tags=["codec", name])

    @staticmethod
    def for_command() -> Logger:
        """Logger for external tool invocations."""
        return get_logger(source="command", tags=["command"])

    @staticmethod
    def for_script() -> Logger:
        """Logger for configuration script execution."""
        return get_logger(source="lua", tags=["script", "lua"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for process-level events (startup, settings, exit)."""
        return get_logger(source="system", tags=["system"])
