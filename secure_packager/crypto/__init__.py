# Cryptographic building blocks
from secure_packager.crypto.envelope import unwrap_key as unwrap_key
from secure_packager.crypto.envelope import wrap_key as wrap_key
from secure_packager.crypto.keys import KeyRole as KeyRole
from secure_packager.crypto.symmetric import SymmetricCipher as SymmetricCipher

__all__ = ["KeyRole", "SymmetricCipher", "unwrap_key", "wrap_key"]
