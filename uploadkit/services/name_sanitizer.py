import hashlib
import os
import re
import secrets
import time
from typing import Optional

from uploadkit.domain.enums.upload_enums import HashMode
from uploadkit.domain.errors import ConfigError
from uploadkit.domain.models import ResolvedName, UploadOptions
from uploadkit.infrastructure.local_storage import LocalStorage

MAX_NAME_LENGTH = 250
DEFAULT_HASH_LENGTH = 32

_UNSAFE_CHARS = re.compile(r"[^a-z0-9-]", re.IGNORECASE | re.ASCII)

FNV32_OFFSET, FNV32_PRIME = 0x811C9DC5, 0x01000193
FNV64_OFFSET, FNV64_PRIME = 0xCBF29CE484222325, 0x100000001B3


class _Fnv1a:
    """FNV-1a con la misma interfaz incremental que hashlib."""

    def __init__(self, bits: int):
        if bits == 32:
            self._value, self._prime, self._mask = FNV32_OFFSET, FNV32_PRIME, 0xFFFFFFFF
        else:
            self._value, self._prime, self._mask = FNV64_OFFSET, FNV64_PRIME, 0xFFFFFFFFFFFFFFFF
        self._width = bits // 4

    def update(self, data: bytes) -> None:
        value = self._value
        for byte in data:
            value = ((value ^ byte) * self._prime) & self._mask
        self._value = value

    def hexdigest(self) -> str:
        return format(self._value, f"0{self._width}x")


HASH_ALGOS = {
    8: lambda: _Fnv1a(32),
    16: lambda: _Fnv1a(64),
    32: hashlib.md5,
    40: hashlib.sha1,
}


def clean(value: str) -> str:
    """Reemplaza cada carácter fuera de [a-z0-9-] por '-', pasa a minúsculas y recorta '-'."""
    value = _UNSAFE_CHARS.sub("-", value)
    if len(value) > MAX_NAME_LENGTH:
        value = value[:MAX_NAME_LENGTH]
    return value.lower().strip("-")


def file_stem(raw_name: str) -> str:
    # Rutas de clientes Windows también ("C:\\fotos\\a.jpg")
    base = raw_name.replace("\\", "/").rsplit("/", 1)[-1]
    return os.path.splitext(base)[0]


class NameSanitizer:
    def __init__(self, storage: Optional[LocalStorage] = None):
        self.storage = storage or LocalStorage()

    def sanitize(self, raw_name: str, appendix: Optional[str] = None,
                 options: Optional[UploadOptions] = None,
                 source_path: Optional[str] = None) -> ResolvedName:
        """
        Convierte un nombre de archivo crudo en un nombre base seguro.

        Args:
            raw_name: Nombre declarado por el cliente (puede traer ruta)
            appendix: Sufijo opcional, ej. 'crop' -> abc123-crop
            options: Opciones de subida (hash_mode, hash_length)
            source_path: Requerido solo con hash_mode='file'

        Returns:
            ResolvedName sin extensión (la resuelve el validador)
        """
        options = options or UploadOptions()
        name = clean(file_stem(raw_name))

        hash_mode = self._hash_mode(options)
        if hash_mode is not HashMode.NONE:
            name = self._hash(name, hash_mode, options, source_path)
        elif not name:
            # Nombres vacíos tras limpiar ("!!!.png")
            name = hashlib.md5(secrets.token_bytes(16)).hexdigest()

        if appendix:
            appendix = clean(appendix)
            if appendix:
                name = f"{name}-{appendix}"

        return ResolvedName(base_name=name)

    @staticmethod
    def _hash_mode(options: UploadOptions) -> HashMode:
        if not options.hash_mode:
            return HashMode.NONE
        try:
            return HashMode(options.hash_mode)
        except ValueError:
            raise ConfigError(
                f"Opción 'hash_mode' inválida '{options.hash_mode}', "
                f"válidas: {', '.join(mode.value for mode in HashMode)}"
            )

    def _hash(self, name: str, hash_mode: HashMode, options: UploadOptions,
              source_path: Optional[str]) -> str:
        hash_length = options.hash_length or DEFAULT_HASH_LENGTH
        algo = HASH_ALGOS.get(hash_length)
        if algo is None:
            raise ConfigError(f"Opción 'hash_length' inválida '{hash_length}', válidas: 8, 16, 32, 40")

        digest = algo()
        if hash_mode is HashMode.RAND:
            digest.update(f"{secrets.token_hex(8)}{time.perf_counter_ns()}".encode())
        elif hash_mode is HashMode.FILE:
            if not source_path:
                raise ConfigError("hash_mode='file' requiere la ruta del archivo fuente")
            for chunk in self.storage.iter_chunks(source_path):
                digest.update(chunk)
        else:
            digest.update(name.encode())

        return digest.hexdigest()
