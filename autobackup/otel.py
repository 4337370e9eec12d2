import copy
import logging
from os import environ
from sys import stdout, stderr
from functools import wraps
from typing import IO, Sequence

import structlog

from opentelemetry import _logs
from opentelemetry import trace
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (SimpleSpanProcessor, BatchSpanProcessor,
                                            ConsoleSpanExporter, SpanExportResult)
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import (SimpleLogRecordProcessor, BatchLogRecordProcessor,
                                            ConsoleLogExporter, LogExportResult)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter


class JsonlConsoleSpanExporter(ConsoleSpanExporter):
    """
    Writes one finished span per line as compact json.
    """

    def __init__(self, out: IO = stdout):
        self.out = out

    def export(self, spans: Sequence[ReadableSpan]):
        try:
            for span in spans:
                self.out.write(span.to_json(indent=None) + '\n')
            self.out.flush()
            return SpanExportResult.SUCCESS
        except Exception as e:
            print(e, file=stderr)
            return SpanExportResult.FAILURE


class JsonlConsoleLogExporter(ConsoleLogExporter):
    """
    Writes one log record per line as compact json.
    """

    def __init__(self, out: IO = stdout):
        self.out = out

    def export(self, batch: Sequence):  # type: ignore
        try:
            for data in batch:
                record = getattr(data, 'log_record', data)
                self.out.write(record.to_json(indent=None) + '\n')
            self.out.flush()
            return LogExportResult.SUCCESS
        except Exception as e:
            print(e, file=stderr)
            return LogExportResult.FAILURE


def _exporter_names(variable: str):
    names = [name.strip() for name in environ.get(variable, 'jsonl').split(',')]
    return [name for name in names if name and name != 'none']


# setup the span exporters
tracer_provider = TracerProvider()
trace.set_tracer_provider(tracer_provider)
span_exporters = {
    'otlp': (BatchSpanProcessor, OTLPSpanExporter),
    'jsonl': (SimpleSpanProcessor, JsonlConsoleSpanExporter)
}
for name in _exporter_names('OTEL_TRACES_EXPORTER'):
    processor, exporter = span_exporters[name]
    tracer_provider.add_span_processor(processor(exporter()))

# setup the log exporters
logger_provider = LoggerProvider()
_logs.set_logger_provider(logger_provider)
log_exporters = {
    'otlp': (BatchLogRecordProcessor, OTLPLogExporter),
    'jsonl': (SimpleLogRecordProcessor, JsonlConsoleLogExporter)
}
log_exporter_names = _exporter_names('OTEL_LOGS_EXPORTER')
for name in log_exporter_names:
    processor, exporter = log_exporters[name]
    logger_provider.add_log_record_processor(processor(exporter()))


def sanitize_log_record(record: logging.LogRecord) -> logging.LogRecord:
    """
    Renders structlog event dicts to plain strings so they can be handed to
    the OTEL log exporter alongside ordinary stdlib records.

    :param record: The record that is being transformed prior to being emitted.
    """
    if not isinstance(record.msg, dict):
        return record
    record = copy.copy(record)
    try:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
        event_dict = dict(record.msg)
        event_dict["logger"] = record.name
        record.msg = renderer(None, record.levelname.lower(), event_dict)
        record.args = ()
        for k in list(record.__dict__.keys()):
            if k.startswith('_'):
                delattr(record, k)
    except Exception as e:
        print(e, file=stderr)
    return record


if log_exporter_names:
    otel_handler = LoggingHandler(logger_provider=logger_provider)
    otel_handler.addFilter(sanitize_log_record)
    logging.getLogger().addHandler(otel_handler)


def with_tracer(tracer: trace.Tracer):
    """
    Decorator that wraps a function call in a span named after the function.

    :param tracer: The tracer used to start the span.
    :type tracer: trace.Tracer
    """

    def decorator(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            full_path = f"{func.__module__}.{func.__qualname__}"
            with tracer.start_as_current_span(full_path):
                return func(*args, **kwargs)

        return wrapper

    return decorator
