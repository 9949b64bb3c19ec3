"""
Structured logging setup using structlog.

Usage:
    from backend.logging_config import configure_logging
    configure_logging(level="INFO")

    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("api_request", method="POST", path="/api/generate", status=200)
"""
import logging
import sys

import structlog

# Guard so repeated calls (uvicorn reload, tests) don't stack handlers
_CONFIGURED = False

SENSITIVE_KEYS = ("secret", "signature", "access_key", "accesskey", "api_key", "authorization")


def _censor_sensitive_data(logger, method_name, event_dict):
    """Redact credentials and signatures before rendering."""
    for key in list(event_dict.keys()):
        if any(sens in key.lower() for sens in SENSITIVE_KEYS):
            event_dict[key] = "***REDACTED***"
    return event_dict


def get_log_level(level_name: str | None) -> int:
    return getattr(logging, (level_name or "INFO").upper(), logging.INFO)


def configure_logging(level: str | None = None, json_output: bool = False, force: bool = False) -> None:
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    log_level = get_log_level(level)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_logger_name,
            _censor_sensitive_data,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True
