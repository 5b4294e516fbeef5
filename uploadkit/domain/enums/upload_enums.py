from enum import Enum


class HashMode(str, Enum):
    """Modos de derivación del nombre final de un archivo subido."""
    NONE = "none"
    RAND = "rand"          # token aleatorio + tiempo de alta resolución
    FILE = "file"          # contenido completo del archivo
    FILE_NAME = "fileName"  # nombre ya saneado


class ResourceKind(str, Enum):
    FILE = "file"
    IMAGE = "image"


class UploadState(str, Enum):
    """Validated -> (Transformed) -> Saved|Moved -> Cleared"""
    VALIDATED = "validated"
    TRANSFORMED = "transformed"
    SAVED = "saved"
    MOVED = "moved"
    CLEARED = "cleared"
