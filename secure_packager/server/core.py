"""
Packager HTTP service using FastAPI.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from secure_packager.common.config import Config
from secure_packager.common.logging_utils import setup_logger

from .routes import PackagerRoutes
from .services import PackagerService


class PackagerServer:
    """Owns the FastAPI app exposing pack, unpack and token issuance."""

    def __init__(
        self,
        config: Config | None = None,
        admin_password: str | None = None,
        server_host: str | None = None,
        server_port: int | None = None,
        log_level: int | None = None,
    ):
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)
        setup_logger(
            self.logger, log_level if log_level is not None else self.config.LOG_LEVEL
        )
        self.admin_password = admin_password or self.config.ADMIN_PASSWORD
        self.server_host = server_host or self.config.SERVER_HOST
        self.server_port = server_port or self.config.SERVER_PORT

        self.app = FastAPI(title="secure_packager")
        self.service = PackagerService(self.admin_password, self.logger)
        self.routes = PackagerRoutes(self.service)
        self.routes.setup_routes(self.app)

        if not self.service.token_issuance_enabled:
            self.logger.info("No admin password configured; /issue-token disabled")
