import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from secure_packager.common.config import (
    LICENSE_BLOCK_WINDOW,
    LICENSE_WARNING_WINDOW,
    OAEP_LABEL,
    Config,
)


def test_protocol_constants() -> None:
    assert OAEP_LABEL == b"secure_packager"
    assert LICENSE_BLOCK_WINDOW == timedelta(hours=24)
    assert LICENSE_WARNING_WINDOW == timedelta(days=7)


def test_config_packaging_defaults() -> None:
    config = Config()
    assert config.ARCHIVE_NAME == "encrypted_files.zip"
    assert config.DEFAULT_ZIP is True
    assert config.DEFAULT_CLEANUP is True
    assert config.DEFAULT_OUTPUT_DIR == Path("./decrypted")
    assert config.RSA_KEY_SIZE == 2048  # noqa: PLR2004


def test_config_server_settings() -> None:
    config = Config()
    assert os.getenv("SECURE_PACKAGER_ADMIN_PASSWORD") == config.ADMIN_PASSWORD
    assert os.getenv("SECURE_PACKAGER_SERVER_HOST", "127.0.0.1") == config.SERVER_HOST
    assert int(os.getenv("SECURE_PACKAGER_SERVER_PORT", "8000")) == config.SERVER_PORT


def test_config_from_env(monkeypatch: Any, tmp_path: Path) -> None:
    monkeypatch.setenv("SECURE_PACKAGER_KEYS_DIR", str(tmp_path))
    monkeypatch.setenv("SECURE_PACKAGER_SERVER_HOST", "0.0.0.0")  # noqa: S104
    monkeypatch.setenv("SECURE_PACKAGER_SERVER_PORT", "9000")
    monkeypatch.setenv("SECURE_PACKAGER_LOG_LEVEL", "debug")
    config = Config()
    assert config.KEYS_DIR == tmp_path
    assert config.SERVER_URL == "http://0.0.0.0:9000"
    assert config.LOG_LEVEL == logging.DEBUG


def test_config_bad_log_level(monkeypatch: Any) -> None:
    monkeypatch.setenv("SECURE_PACKAGER_LOG_LEVEL", "chatty")
    assert Config().LOG_LEVEL == logging.INFO
