# ─────────────────────────────────────────────────────────────────────────────
# Logging Configuration — structlog, key-safe
# ─────────────────────────────────────────────────────────────────────────────


import logging
import sys

import structlog

# httpx logs every request URL at INFO. The Gemini key travels in the query
# string, so these loggers must never emit below WARNING.
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Gateway events (`gateway_error`, `upstream_error_response`,
    `request_completed`) carry the request_id bound by the middleware. JSON
    lines by default; `LOG_JSON=false` switches to the console renderer.
    Third-party loggers that would echo the upstream URL are capped at WARNING.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    # shared_processors already ran in structlog.configure(); running them
    # again here would duplicate timestamps and level tags.
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper()))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
