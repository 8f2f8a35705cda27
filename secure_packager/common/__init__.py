# Common utilities
from secure_packager.common.config import Config as Config
from secure_packager.common.logging_utils import setup_logger as setup_logger

__all__ = ["Config", "setup_logger"]
