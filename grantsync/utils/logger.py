"""
Logging infrastructure for the grants sync job.

Provides:
- Structured logging with millisecond timestamps
- key=value suffixes for structured context
- Console and optional file output
- Error/warning tracking for the end-of-run summary
- Stage timing
"""

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional


def _format_fields(message: str, fields: dict) -> str:
    if not fields:
        return message
    formatted_data = " ".join(f"{k}={v}" for k, v in fields.items())
    return f"{message} [{formatted_data}]"


class MillisecondsFormatter(logging.Formatter):
    """Custom formatter that includes milliseconds and aligns log levels."""

    def formatTime(self, record, datefmt=None):  # noqa: N802 - must match parent class method name
        """Override formatTime to include milliseconds."""
        ct = datetime.fromtimestamp(record.created)
        if datefmt and "%f" in datefmt:
            s = ct.strftime(datefmt.replace(",%f", ""))
            return s + f",{int(record.msecs):03d}"
        elif datefmt:
            return ct.strftime(datefmt)
        else:
            return ct.strftime("%Y-%m-%d %H:%M:%S") + f",{int(record.msecs):03d}"


class PipelineLogger:
    """
    Centralized logger for the sync job with structured output.
    """

    def __init__(
        self,
        name: str = "grantsync",
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        log_dir: Optional[Path] = None,
        phase: Optional[str] = None,
        configure_root: bool = True,
    ):
        """
        Initialize the pipeline logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file name
            log_dir: Directory for log files (defaults to logs/)
            phase: Optional phase name shown in every line (e.g., "Sync", "Health")
            configure_root: Route root and third-party loggers through the same format
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))
        self.phase = phase

        # Prevent propagation to root logger to avoid duplicate logs
        self.logger.propagate = False

        if self.logger.handlers:
            self.logger.handlers.clear()

        if phase:
            fmt_str = f"%(asctime)s | %(levelname)-8s | {phase} | %(filename)s:%(lineno)d | %(message)s"
        else:
            fmt_str = "%(asctime)s | %(levelname)-8s | %(filename)s:%(lineno)d | %(message)s"

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_formatter = MillisecondsFormatter(fmt_str, datefmt="%Y-%m-%d %H:%M:%S,%f")
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            if log_dir is None:
                log_dir = Path(__file__).parent.parent.parent / "logs"

            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / log_file

            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(logging.DEBUG)  # Log everything to file
            file_handler.setFormatter(MillisecondsFormatter(fmt_str, datefmt="%Y-%m-%d %H:%M:%S,%f"))
            self.logger.addHandler(file_handler)

            self.info(f"Logging to file: {log_path}")

        if configure_root:
            self._configure_external_loggers(log_level, console_formatter)

        # Track errors for summary reporting
        self.errors = []
        self.warnings = []

    def _configure_external_loggers(self, log_level: str, formatter: logging.Formatter):
        """
        Route module-level loggers (logging.getLogger(__name__)) and
        third-party library loggers through the same aligned format.
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level.upper()))
        root_logger.handlers.clear()

        root_handler = logging.StreamHandler(sys.stdout)
        root_handler.setLevel(getattr(logging, log_level.upper()))
        root_handler.setFormatter(formatter)
        root_logger.addHandler(root_handler)

        # urllib3 is chatty at DEBUG (one line per connection)
        for lib_name in ["urllib3", "requests", "pymysql"]:
            lib_logger = logging.getLogger(lib_name)
            lib_logger.handlers.clear()
            lib_logger.propagate = True
            lib_logger.setLevel(max(getattr(logging, log_level.upper()), logging.INFO))

    def debug(self, message: str, **kwargs):
        """Log debug message with optional structured data."""
        self.logger.debug(_format_fields(message, kwargs), stacklevel=2)

    def info(self, message: str, **kwargs):
        """Log info message with optional structured data."""
        self.logger.info(_format_fields(message, kwargs), stacklevel=2)

    def warning(self, message: str, **kwargs):
        """Log warning message and track for reporting."""
        message = _format_fields(message, kwargs)
        self.logger.warning(message, stacklevel=2)
        self.warnings.append(
            {
                "message": message,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def error(self, message: str, exception: Optional[Exception] = None, **kwargs):
        """Log error message and track for reporting."""
        if exception:
            message = f"{message} | Exception: {str(exception)}"
        message = _format_fields(message, kwargs)

        self.logger.error(message, exc_info=exception is not None, stacklevel=2)
        self.errors.append(
            {
                "message": message,
                "exception": str(exception) if exception else None,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def log_sync_start(self, source_url: str):
        """Log start of a sync run."""
        self.info("=" * 60)
        self.info("Grants sync started", source=source_url)
        self.info("=" * 60)

    def log_sync_complete(
        self,
        success: bool,
        records_processed: int,
        records_deleted: int,
        duration_seconds: float,
        file_name: Optional[str] = None,
    ):
        """Log completion of a sync run."""
        self.info("=" * 60)
        self.info(
            "Grants sync finished",
            success=success,
            file=file_name or "none",
            processed=records_processed,
            deleted=records_deleted,
            duration_seconds=round(duration_seconds, 2),
        )
        self.info("=" * 60)

    @contextmanager
    def time_stage(self, stage: str, **context):
        """
        Context manager to time and log one pipeline stage.

        Usage:
            with logger.time_stage("download", file=file_name):
                # ... perform stage ...
        """
        start_time = datetime.now()
        self.debug(f"Starting {stage}", **context)

        try:
            yield
            duration = (datetime.now() - start_time).total_seconds()
            self.info(f"Completed {stage}", duration_seconds=round(duration, 2), **context)
        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            self.error(f"Failed {stage}", exception=e, duration_seconds=round(duration, 2), **context)
            raise

    def get_error_summary(self) -> dict:
        """Get summary of errors and warnings for reporting."""
        return {
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "errors": self.errors,
            "warnings": self.warnings,
        }


# ============================================================================
# Global Logger Instance
# ============================================================================

_default_logger: Optional[PipelineLogger] = None


def get_logger(
    name: str = "grantsync",
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: Optional[Path] = None,
    phase: Optional[str] = None,
) -> PipelineLogger:
    """
    Get or create the default pipeline logger.

    Args:
        name: Logger name
        log_level: Logging level
        log_file: Optional log file
        log_dir: Optional directory for the log file
        phase: Optional phase name (e.g., "Sync")

    Returns:
        PipelineLogger instance
    """
    global _default_logger

    if _default_logger is None:
        _default_logger = PipelineLogger(
            name=name,
            log_level=log_level,
            log_file=log_file,
            log_dir=log_dir,
            phase=phase,
        )

    return _default_logger
