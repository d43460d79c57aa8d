"""
Application Logger

Configures the `quizportal` logger tree. Every module takes a child of
`app_logger` so one LOG_LEVEL / LOG_JSON / LOG_FILE setting governs the whole
service.
"""

import datetime
import functools
import inspect
import json
import logging
import os
import sys
import time
from typing import Any, Callable, Dict, Optional, TypeVar, Union

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
APP_LOGGER_NAME = "quizportal"

F = TypeVar('F', bound=Callable[..., Any])

__all__ = [
    'configure_logger',
    'get_logger',
    'LoggerAdapter',
    'JsonFormatter',
    'app_logger',
    'log_execution_time'
]


class JsonFormatter(logging.Formatter):
    """
    Formatter that renders each record as a single JSON object.

    Structured context passed as `extra={"data": {...}}` (which LoggerAdapter
    does automatically) is merged into the top level of the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_object: Dict[str, Any] = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.timezone.utc
            ).isoformat(),
            "name": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }

        if record.exc_info:
            log_object["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        data = getattr(record, "data", None)
        if isinstance(data, dict):
            log_object.update(data)

        return json.dumps(log_object, default=str)


def configure_logger(
    name: str = APP_LOGGER_NAME,
    level: Union[str, int] = logging.INFO,
    use_json: bool = False,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure a logger with console and optional file handlers.

    Args:
        name: Logger name
        level: Log level (name or number)
        use_json: Whether to use JSON formatting
        log_file: Path to log file (if empty, no file handler is created)
        console_output: Whether to output logs to stdout

    Returns:
        Configured logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []

    formatter: logging.Formatter
    if use_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_DATE_FORMAT)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        try:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not create log file {log_file}: {e}")

    return logger


def get_logger(name: str, parent: Optional[logging.Logger] = None) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Logger name
        parent: Optional parent logger

    Returns:
        Logger instance
    """
    if parent:
        return parent.getChild(name)
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that attaches a fixed context to every record.

    The context lands in `record.data`, which JsonFormatter flattens into
    the emitted object (e.g. user_id, assignment_id).
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, context or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs = kwargs.copy()
        extra = dict(kwargs.get('extra') or {})
        data = dict(extra.get('data') or {})
        data.update(self.extra)
        extra['data'] = data
        kwargs['extra'] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> 'LoggerAdapter':
        """Create a new adapter with additional context."""
        new_context = dict(self.extra)
        new_context.update(context)
        return LoggerAdapter(self.logger, new_context)


def get_app_logger() -> logging.Logger:
    """
    Get or create the application logger.

    Returns:
        The configured application logger
    """
    logger = logging.getLogger(APP_LOGGER_NAME)

    if not logger.handlers:
        return configure_logger(
            name=APP_LOGGER_NAME,
            level=os.environ.get("LOG_LEVEL", "INFO"),
            use_json=os.environ.get("LOG_JSON", "false").lower() == "true",
            log_file=os.environ.get("LOG_FILE"),
        )

    return logger


app_logger = get_app_logger()


def log_execution_time(logger: Optional[logging.Logger] = None) -> Callable[[F], F]:
    """
    Decorator that logs how long a (sync or async) callable took.

    Successful calls are logged at debug level; failures are logged at
    warning level with the exception type and re-raised unchanged.
    """
    def decorator(func: F) -> F:
        def _log(started: float, error: Optional[BaseException] = None) -> None:
            elapsed = time.perf_counter() - started
            target = logger or app_logger
            if error is None:
                target.debug(f"{func.__qualname__} executed in {elapsed:.3f} seconds")
            else:
                target.warning(
                    f"{func.__qualname__} failed after {elapsed:.3f} seconds: "
                    f"{type(error).__name__}: {error}"
                )

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log(started, e)
                raise
            _log(started)
            return result

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log(started, e)
                raise
            _log(started)
            return result

        return async_wrapper if inspect.iscoroutinefunction(func) else wrapper
    return decorator
