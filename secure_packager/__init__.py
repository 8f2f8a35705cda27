# Secure Packager

from secure_packager.licensing import issue_token, verify_token
from secure_packager.packaging import pack, unpack

__all__ = [
    "issue_token",
    "pack",
    "unpack",
    "verify_token",
]
