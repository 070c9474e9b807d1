import sys

from loguru import logger

from yuflow_store.settings import Settings


def setup_logging(settings: Settings) -> None:
    """
    Configure logging for the application.

    stdout carries the MCP protocol, so the console sink writes to stderr.
    When a log file name is configured, records are also written to a rotating
    file inside the data directory.
    """

    # Remove default handler to avoid duplicate logs
    logger.remove()

    logger.add(
        sys.stderr,
        level=settings.logging_level,
        format=settings.logging_format,
        colorize=False,
        backtrace=True,
        diagnose=False,
        enqueue=True,
        catch=True,
    )

    log_path = settings.log_path
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level=settings.logging_level,
            format=settings.logging_format,
            rotation=settings.logging_rotation,
            retention=settings.logging_retention,
            encoding="utf-8",
            enqueue=True,
            catch=True,
        )

    logger.configure(extra={"app": settings.app_name, "version": settings.app_version})

    logger.info(
        "Logging system initialized",
        log_level=settings.logging_level,
        data_dir=settings.app_data_dir,
        log_file=str(log_path) if log_path else None,
    )
