from typing import Optional


class UploadError(Exception):
    """Error base de uploadkit. Cada subclase tiene un código estable."""

    code = 0

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigError(UploadError):
    """Opción requerida ausente o inválida (allow-lists, hashLength, etc.)"""
    code = 1


class SizeExceededError(UploadError):
    code = 2


class TypeNotAllowedError(UploadError):
    code = 3


class ExtensionNotAllowedError(UploadError):
    code = 4


class EmptyExtensionError(UploadError):
    code = 5


class SourceNotFoundError(UploadError):
    code = 6


class DirectoryCreateError(UploadError):
    code = 7


class ResampleError(UploadError):
    code = 8


class UnsupportedFormatError(UploadError):
    code = 9


class DestinationExistsError(UploadError):
    """Solo se lanza cuando se pide protección contra sobrescritura."""
    code = 10


class BackendIOError(UploadError):
    """Envuelve un fallo de lectura/escritura con el mensaje del sistema."""
    code = 11


class RemoteFileError(UploadError):
    code = 12

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class InvalidUrlError(RemoteFileError):
    code = 13
