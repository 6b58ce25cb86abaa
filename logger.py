"""Structured logging infrastructure with verbosity levels and progress tracking."""

import copy
import logging
import logging.handlers
import threading
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'feishu_docs_exporter'


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with configurable verbosity levels.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path to log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit log level string

    Returns:
        Configured logger instance
    """
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    else:
        if verbosity >= 2:
            log_level = logging.DEBUG
        elif verbosity >= 1:
            log_level = logging.INFO
        else:
            log_level = logging.WARNING

    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    if date_format is None:
        date_format = '%Y-%m-%d %H:%M:%S'

    # Root stays at WARNING to keep requests/urllib3 quiet
    logging.basicConfig(
        level=logging.WARNING,
        format=log_format,
        datefmt=date_format
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)

            logger.info(f"Logging to file: {log_file}")
            logger.info(f"Log level: {logging.getLevelName(log_level)}")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {str(e)}")
    else:
        logger.info(f"Console logging only. Level: {logging.getLevelName(log_level)}")

    return logger


class ProgressTracker:
    """Context manager for tracking progress across operations.

    The total may grow while work is in flight (crawls discover leaves as
    they walk), and increments may come from worker threads.
    """

    def __init__(self, total_items: int = 0, item_type: str = "items"):
        """
        Initialize progress tracker.

        Args:
            total_items: Number of items known up front
            item_type: Description of item type (e.g., "documents", "files")
        """
        self.total_items = total_items
        self.item_type = item_type
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.skipped_items = 0
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(LOGGER_NAME)
        self._lock = threading.Lock()

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Starting processing of {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit progress tracking context and log summary."""
        if self.start_time is None:
            return

        stats = self.get_stats()

        if self.failed_items > 0 and self.failed_items == self.total_items:
            log_method = self.logger.error
        elif self.failed_items > 0:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        log_method(f"=== Progress Summary: {self.item_type.upper()} ===")
        log_method(f"Total: {stats['total']}")
        log_method(f"Processed: {stats['processed']}")
        log_method(f"Successful: {stats['successful']}")
        log_method(f"Failed: {stats['failed']}")
        log_method(f"Skipped: {stats['skipped']}")
        log_method(f"Success Rate: {stats['success_rate']:.1f}%")
        log_method(f"Elapsed Time: {stats['elapsed_time_formatted']}")

    def add_items(self, count: int = 1) -> None:
        """Grow the expected total."""
        with self._lock:
            self.total_items += count

    def increment(self, success: bool = True) -> None:
        """
        Increment progress counter.

        Args:
            success: Whether the item was processed successfully
        """
        with self._lock:
            self.processed_items += 1
            if success:
                self.successful_items += 1
            else:
                self.failed_items += 1
            processed = self.processed_items
            total = self.total_items

        if processed % 10 == 0 or not success:
            status = "Success" if success else "Failed"
            self.logger.info(
                f"Processed {processed}/{total} {self.item_type} - Last: {status}"
            )

    def skip(self) -> None:
        """Record an item that was never run (cancelled)."""
        with self._lock:
            self.skipped_items += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get current progress statistics."""
        elapsed = 0.0 if self.start_time is None else time.time() - self.start_time

        with self._lock:
            return {
                'total': self.total_items,
                'processed': self.processed_items,
                'successful': self.successful_items,
                'failed': self.failed_items,
                'skipped': self.skipped_items,
                'success_rate': (self.successful_items / self.total_items * 100)
                               if self.total_items > 0 else 0,
                'elapsed_time': elapsed,
                'elapsed_time_formatted': self._format_elapsed(elapsed)
            }

    @staticmethod
    def _format_elapsed(seconds: float) -> str:
        """Format elapsed time in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes = int(seconds // 60)
        seconds = int(seconds % 60)

        if minutes < 60:
            return f"{minutes}m {seconds}s"

        hours = minutes // 60
        minutes = minutes % 60

        return f"{hours}h {minutes}m {seconds}s"


def log_section(title: str) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
    """
    logger = logging.getLogger(LOGGER_NAME)

    separator = "=" * 60
    logger.info("")
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)
    logger.info("")


def log_config(config: Dict[str, Any]) -> None:
    """
    Log sanitized configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)

    sanitized_config = _sanitize_config(config)

    log_section("Configuration")

    feishu = sanitized_config.get('feishu', {})
    logger.info(f"Open API Base URL: {feishu.get('base_url', 'Not Set')}")
    logger.info(f"App ID: {feishu.get('app_id', 'Not Set')}")
    logger.info("App Secret: ***REDACTED***" if feishu.get('app_secret') else "App Secret: Not Set")
    logger.info("")

    output = sanitized_config.get('output', {})
    logger.info(f"Image Directory: {output.get('image_dir', 'static')}")
    logger.info(f"Title As Filename: {output.get('title_as_filename', False)}")
    logger.info(f"Use HTML Tags: {output.get('use_html_tags', False)}")
    logger.info(f"Skip Image Download: {output.get('skip_img_download', False)}")
    logger.info(f"Dump JSON: {output.get('dump_json', False)}")
    logger.info("")

    crawl = sanitized_config.get('crawl', {})
    logger.info(f"Max Concurrency: {crawl.get('max_concurrency', 10)}")
    logger.info(f"Cancel On Error: {crawl.get('cancel_on_error', True)}")


def _sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a sanitized copy of configuration with sensitive fields masked.

    Args:
        config: Configuration dictionary

    Returns:
        Sanitized configuration copy
    """
    sanitized = copy.deepcopy(config)

    sensitive_fields = {
        'secret', 'password', 'access_token', 'api_key', 'auth_header'
    }

    def mask_sensitive(data: Any) -> Any:
        """Recursively mask sensitive fields."""
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                is_sensitive = any(sensitive in str(key).lower() for sensitive in sensitive_fields)
                if is_sensitive and isinstance(value, str):
                    masked[key] = "***REDACTED***"
                else:
                    masked[key] = mask_sensitive(value)
            return masked
        elif isinstance(data, list):
            return [mask_sensitive(item) for item in data]
        else:
            return data

    return mask_sensitive(sanitized)


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config'
]
