import sys
import logging
import structlog
from os import environ

from autobackup.otel import log_exporter_names

console_log_level = environ.get("CONSOLE_LOG_LEVEL", "INFO")

timestamper = structlog.processors.TimeStamper(fmt="iso")


def extract_from_record(logger, method_name, event_dict):
    """
    Extract the logger name and add it to the event dict.
    """
    event_dict["logger"] = getattr(logger, "name", "root")
    if not event_dict.get('_from_structlog', False):
        name = getattr(event_dict.get("_record"), "name", "unknown")
        event_dict["logger"] = name

    return event_dict


structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(console_log_level)
console_handler.setFormatter(
    structlog.stdlib.ProcessorFormatter(processors=[
        timestamper,
        structlog.stdlib.add_log_level,
        extract_from_record,
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        ),
    ],))


def root_log_level(console_level: str, otel_level: str, otel_logs_exported: bool) -> int:
    """
    The root logger has to pass records down to the most verbose handler, the OTEL
    handler only counts when a log exporter is configured.
    """
    level = getattr(logging, console_level.upper(), logging.INFO)
    if otel_logs_exported:
        level = min(level, getattr(logging, otel_level.upper(), logging.INFO))
    return level


root_logger = logging.getLogger()
root_logger.addHandler(console_handler)
root_logger.setLevel(
    root_log_level(console_log_level, environ.get('OTEL_LOG_LEVEL', 'INFO'), bool(log_exporter_names)))

# the observer thread is chatty at debug level
logging.getLogger("watchdog").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
