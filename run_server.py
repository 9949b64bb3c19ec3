#!/usr/bin/env python3
"""
Launcher for the LiblibAI proxy server.

    python run_server.py

Host and port come from SERVER_HOST / SERVER_PORT (see config/settings.py).
uvicorn itself logs bind errors (port in use, no permission) and exits with status 1.
"""

import structlog
import uvicorn

from backend.logging_config import configure_logging
from config.settings import settings

logger = structlog.get_logger("run_server")


def main() -> None:
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    host, port = settings.SERVER_HOST, settings.SERVER_PORT
    logger.info("server_starting", url=f"http://{host}:{port}/")
    logger.info("health_endpoint", url=f"http://{host}:{port}/api/health")

    uvicorn.run("backend.app:app", host=host, port=port, log_level=settings.LOG_LEVEL.lower())
    logger.info("server_stopped")


if __name__ == "__main__":
    main()
