"""FastAPI gateway"""

from __future__ import annotations

import logging
from typing import Sequence

import uvicorn

from ..api.app import get_app
from ..config import settings as config_settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "audit_api"


def main(argv: Sequence[str] | None = None) -> None:
    cfg = config_settings.get_settings()
    logger.info(
        "%s starting on %s:%s (clickhouse=%s database=%s)",
        SERVICE_NAME,
        cfg.api_host,
        cfg.api_port,
        cfg.clickhouse_url,
        cfg.database,
    )
    app = get_app()
    uvicorn.run(app, host=cfg.api_host, port=cfg.api_port, log_level="info")
