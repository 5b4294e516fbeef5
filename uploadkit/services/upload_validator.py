import logging
import os
import re
from typing import Callable, Optional, Union

from uploadkit.domain.errors import (
    ConfigError, EmptyExtensionError, ExtensionNotAllowedError,
    SizeExceededError, SourceNotFoundError, TypeNotAllowedError,
)
from uploadkit.domain.models import UploadOptions, UploadRequest, ValidatedUpload
from uploadkit.infrastructure import mime
from uploadkit.infrastructure.local_storage import LocalStorage

logger = logging.getLogger(__name__)

BYTE_BASE = 1024
BYTE_UNITS = ["", "K", "M", "G"]

_BYTES_PATTERN = re.compile(r"\s*(\d+(?:\.\d+)?)\s*([kmg]?)b?\s*", re.IGNORECASE)


def convert_bytes(value: Union[int, str, None]) -> int:
    """'2k' -> 2048, '2m' -> 2097152, '512' -> 512 (base 1024)."""
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value

    match = _BYTES_PATTERN.fullmatch(value)
    if not match:
        raise ConfigError(f"Opción 'max_file_size' inválida '{value}', ej: 2048, 2048k o 2m")

    number, unit = match.groups()
    return int(float(number) * BYTE_BASE ** BYTE_UNITS.index(unit.upper()))


def format_bytes(size: int) -> str:
    """2097152 -> '2MB'"""
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= BYTE_BASE and i < len(units) - 1:
        value /= BYTE_BASE
        i += 1
    return f"{round(value, 2):g}{units[i]}"


def split_allow_list(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


def is_allowed(value: str, allow_list: str) -> bool:
    return allow_list.strip() == "*" or value in split_allow_list(allow_list)


def extension_of(name: str) -> Optional[str]:
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    extension = os.path.splitext(base)[1].lstrip(".")
    return extension.lower() or None


class UploadValidator:
    def __init__(self, storage: Optional[LocalStorage] = None,
                 detect_type: Optional[Callable[[str], Optional[str]]] = None):
        self.storage = storage or LocalStorage()
        self.detect_type = detect_type or mime.get_type

    def validate(self, request: UploadRequest, options: UploadOptions) -> ValidatedUpload:
        """
        Valida un archivo subido contra las opciones.

        Las allow-lists son obligatorias: no hay un "permitir todo" por defecto,
        para eso hay que pasar '*' explícitamente.
        """
        # Seguridad de tipos y extensiones
        if not options.allowed_types or not options.allowed_extensions:
            raise ConfigError(
                "Las opciones 'allowed_types' y 'allowed_extensions' no pueden estar vacías; "
                "indique tipos y extensiones permitidos (ej: 'image/jpeg,image/png' y 'jpg,jpeg') "
                "o '*' para permitir todo"
            )

        if not os.path.isfile(request.source_path):
            raise SourceNotFoundError(f"No existe el archivo fuente: {request.source_path}")

        size = request.declared_size
        if size is None:
            size = self.storage.size(request.source_path)

        max_file_size = convert_bytes(options.max_file_size)
        if max_file_size and size > max_file_size:
            raise SizeExceededError(
                f"Tamaño excedido: {format_bytes(size)}, 'max_file_size' es "
                f"'{options.max_file_size}' ({max_file_size} bytes)"
            )

        # El tipo detectado por contenido manda sobre el declarado por el cliente
        mime_type = self.detect_type(request.source_path)
        if not mime_type:
            mime_type = "application/octet-stream"
        if request.mime_hint and request.mime_hint != mime_type:
            logger.info(f"Tipo declarado '{request.mime_hint}' difiere del detectado '{mime_type}'")

        if not is_allowed(mime_type, options.allowed_types):
            raise TypeNotAllowedError(
                f"Tipo '{mime_type}' no permitido, tipos permitidos: '{options.allowed_types}'"
            )

        extension = extension_of(request.declared_name) or mime.get_extension_by_type(mime_type)

        if extension and not is_allowed(extension, options.allowed_extensions):
            raise ExtensionNotAllowedError(
                f"Extensión '{extension}' no permitida, extensiones permitidas: '{options.allowed_extensions}'"
            )

        if not extension and not options.allow_empty_extensions:
            raise EmptyExtensionError("No se permiten archivos sin extensión")

        return ValidatedUpload(mime_type=mime_type, extension=extension, size=size)
