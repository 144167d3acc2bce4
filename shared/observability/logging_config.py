"""
Structured Logging - structlog output for the sentence gateway.

stdlib ``logging`` calls from every module are routed through one
structlog processor chain, so a record carries:
- the service name and an ISO timestamp
- request context bound with LogContext (rpc method, request id)
- rendered exception info

Output is one JSON object per line, or colored console lines for
local development.
"""
import logging
import sys
from typing import Any, List, Optional, TextIO

import structlog
from structlog.contextvars import bind_contextvars, bound_contextvars, clear_contextvars

_HANDLER_NAME = "sentence_gateway"

# Libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "grpc", "hpack")


def _service_processor(service_name: str):
    def add_service(logger, method_name, event_dict):
        event_dict.setdefault("service", service_name)
        return event_dict
    return add_service


def _build_processors(service_name: str) -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_processor(service_name),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Route stdlib and structlog loggers through one structured handler.

    Calling it again replaces the handler installed by the previous call;
    handlers added by other code are left alone.

    Args:
        service_name: Value of the ``service`` key on every record
        log_level: Root logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines (True) or console rendering (False)
        stream: Output stream (default: stdout)

    Returns:
        The installed handler
    """
    processors = _build_processors(service_name)
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=stream is None and sys.stdout.isatty())
    )

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=processors,
    ))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


def get_logger(name: Optional[str] = None) -> Any:
    """Structured logger; stdlib ``logging.getLogger`` loggers share its output."""
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Bind key-value pairs to every following record of this thread or task.

    Usage:
        bind_context(rpc_method="Translate")
        logger.info("Processing request")  # includes rpc_method
    """
    bind_contextvars(**kwargs)


def clear_context() -> None:
    clear_contextvars()


class LogContext:
    """
    Scoped logging context.

    Keys bound on entry are restored to their previous values (or
    removed) on exit, also when the block raises.

    Usage:
        with LogContext(rpc_method="Translate", request_id="3f9a1c"):
            logger.info("Starting")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._bound = None

    def __enter__(self):
        self._bound = bound_contextvars(**self.context)
        self._bound.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._bound.__exit__(exc_type, exc_val, exc_tb)
        self._bound = None
        return False
