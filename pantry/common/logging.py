import logging

from opentelemetry import trace

from .config import ServiceSettings


_NO_SPAN = "-"
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | trace_id=%(trace_id)s span_id=%(span_id)s | %(message)s"


class TraceContextFilter(logging.Filter):
    """Stamp records with the identifiers of the active OpenTelemetry span."""

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        else:
            record.trace_id = _NO_SPAN
            record.span_id = _NO_SPAN
        return True


def _has_context_filter(filterer: logging.Filterer) -> bool:
    return any(isinstance(f, TraceContextFilter) for f in filterer.filters)


def configure_logging(settings: ServiceSettings) -> None:
    """Configure the root logger level, format and trace context filter."""

    logging.basicConfig(level=settings.log_level, format=_LOG_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    context_filter = TraceContextFilter()
    if not _has_context_filter(root_logger):
        root_logger.addFilter(context_filter)
    for handler in root_logger.handlers:
        if not _has_context_filter(handler):
            handler.addFilter(context_filter)
