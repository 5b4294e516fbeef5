import os
import logging
from types import MappingProxyType
from typing import Optional

from uploadkit.domain.errors import BackendIOError, SourceNotFoundError

logger = logging.getLogger(__name__)

# Tabla tipo -> extensiones (la primera es la preferida). Constante de proceso.
MIME_TYPES = MappingProxyType({
    # Imágenes
    "image/jpeg": ("jpg", "jpeg", "jpe"),
    "image/png": ("png",),
    "image/gif": ("gif",),
    "image/webp": ("webp",),
    "image/bmp": ("bmp",),
    "image/tiff": ("tif", "tiff"),
    "image/svg+xml": ("svg", "svgz"),
    "image/x-icon": ("ico",),
    "image/avif": ("avif",),
    "image/heic": ("heic",),
    # Texto
    "text/plain": ("txt", "text", "log"),
    "text/csv": ("csv",),
    "text/html": ("html", "htm"),
    "text/css": ("css",),
    "text/javascript": ("js", "mjs"),
    "text/markdown": ("md",),
    "text/xml": ("xml",),
    "application/json": ("json",),
    "application/xml": ("xml",),
    # Documentos
    "application/pdf": ("pdf",),
    "application/msword": ("doc",),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ("docx",),
    "application/vnd.ms-excel": ("xls",),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ("xlsx",),
    "application/vnd.ms-powerpoint": ("ppt",),
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ("pptx",),
    "application/rtf": ("rtf",),
    # Audio / video
    "audio/mpeg": ("mp3",),
    "audio/ogg": ("ogg", "oga"),
    "audio/wav": ("wav",),
    "audio/x-wav": ("wav",),
    "audio/flac": ("flac",),
    "video/mp4": ("mp4", "m4v"),
    "video/webm": ("webm",),
    "video/quicktime": ("mov",),
    "video/x-msvideo": ("avi",),
    # Archivos comprimidos
    "application/zip": ("zip",),
    "application/gzip": ("gz", "tgz"),
    "application/x-tar": ("tar",),
    "application/x-bzip2": ("bz2",),
    "application/x-7z-compressed": ("7z",),
    "application/vnd.rar": ("rar",),
})


def get_type_by_extension(extension: str) -> Optional[str]:
    search = extension.lower().lstrip(".")
    for mime_type, extensions in MIME_TYPES.items():
        if search in extensions:
            return mime_type
    return None


def get_extension_by_type(mime_type: str, index: int = 0) -> Optional[str]:
    extensions = MIME_TYPES.get(mime_type.lower().strip())
    if extensions and index < len(extensions):
        return extensions[index]
    return None


def get_type(path: str) -> Optional[str]:
    """
    Detecta el tipo MIME por contenido (magic bytes) con libmagic.
    Si libmagic no decide, se intenta por la extensión del archivo.
    """
    if not os.path.exists(path):
        raise SourceNotFoundError(f"No existe el archivo fuente: {path}")

    # libmagic se carga al primer uso
    import magic

    try:
        mime_type = magic.from_file(path, mime=True)
    except (OSError, magic.MagicException) as e:
        logger.error(f"Error detectando tipo MIME de {path}: {e}")
        raise BackendIOError(str(e))

    if mime_type == "inode/x-empty":
        mime_type = "application/x-empty"

    if not mime_type:
        extension = os.path.splitext(path)[1]
        if extension:
            mime_type = get_type_by_extension(extension)

    return mime_type
