import logging
import sys

import structlog


_handler = None


def configure_logging(app) -> None:
    """Route structlog and the standard library (Flask, werkzeug) through one handler."""
    global _handler

    common_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if app.config.get("LOG_JSON") or not (app.debug or app.testing):
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *common_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=common_processors,
        processor=renderer,
    )

    root_logger = logging.getLogger()
    # create_app can run several times in one process (tests); swap, don't stack.
    if _handler is not None:
        root_logger.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(formatter)
    root_logger.addHandler(_handler)
    root_logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
