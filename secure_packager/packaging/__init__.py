# Packaging and unpacking workflows
from secure_packager.packaging.packager import Packager as Packager
from secure_packager.packaging.packager import pack as pack
from secure_packager.packaging.unpacker import Unpacker as Unpacker
from secure_packager.packaging.unpacker import UnpackState as UnpackState
from secure_packager.packaging.unpacker import unpack as unpack

__all__ = ["Packager", "UnpackState", "Unpacker", "pack", "unpack"]
