"""
Entry point for the packager HTTP service.
"""

import logging

import uvicorn

from secure_packager.common.config import Config

from .core import PackagerServer


def start_server(
    config: Config | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Start the packager service."""
    if config is None:
        config = Config()
    logging.basicConfig(level=config.LOG_LEVEL)
    server = PackagerServer(config=config, server_host=host, server_port=port)
    uvicorn.run(server.app, host=server.server_host, port=server.server_port)
