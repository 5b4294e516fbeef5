from pydantic import BaseModel
from dotenv import load_dotenv
import os

from uploadkit.domain.models import UploadOptions

load_dotenv()  # Carga las variables de entorno desde .env

class Settings(BaseModel):
    UPLOAD_DIRECTORY: str = os.getenv("UPLOAD_DIRECTORY", "uploads")
    UPLOAD_ALLOWED_TYPES: str = os.getenv("UPLOAD_ALLOWED_TYPES", "image/jpeg,image/png,image/gif,image/webp")
    UPLOAD_ALLOWED_EXTENSIONS: str = os.getenv("UPLOAD_ALLOWED_EXTENSIONS", "jpg,jpeg,png,gif,webp")
    UPLOAD_MAX_FILE_SIZE: str = os.getenv("UPLOAD_MAX_FILE_SIZE", "2m")
    UPLOAD_HASH: str = os.getenv("UPLOAD_HASH", "none")
    UPLOAD_HASH_LENGTH: int = int(os.getenv("UPLOAD_HASH_LENGTH", "32"))
    JPEG_QUALITY: int = int(os.getenv("JPEG_QUALITY", "-1"))
    WEBP_QUALITY: int = int(os.getenv("WEBP_QUALITY", "-1"))
    PNG_ZIP_LEVEL: int = int(os.getenv("PNG_ZIP_LEVEL", "-1"))
    REMOTE_TIMEOUT: float = float(os.getenv("REMOTE_TIMEOUT", "3"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()

UPLOAD_DIRECTORY = settings.UPLOAD_DIRECTORY
UPLOAD_ALLOWED_TYPES = settings.UPLOAD_ALLOWED_TYPES
UPLOAD_ALLOWED_EXTENSIONS = settings.UPLOAD_ALLOWED_EXTENSIONS
UPLOAD_MAX_FILE_SIZE = settings.UPLOAD_MAX_FILE_SIZE
UPLOAD_HASH = settings.UPLOAD_HASH
UPLOAD_HASH_LENGTH = settings.UPLOAD_HASH_LENGTH
JPEG_QUALITY = settings.JPEG_QUALITY
WEBP_QUALITY = settings.WEBP_QUALITY
PNG_ZIP_LEVEL = settings.PNG_ZIP_LEVEL
REMOTE_TIMEOUT = settings.REMOTE_TIMEOUT
LOG_LEVEL = settings.LOG_LEVEL


def default_upload_options(**overrides) -> UploadOptions:
    """Opciones de subida a partir de la configuración del entorno."""
    options = UploadOptions(
        hash_mode=UPLOAD_HASH,
        hash_length=UPLOAD_HASH_LENGTH,
        max_file_size=UPLOAD_MAX_FILE_SIZE,
        allowed_types=UPLOAD_ALLOWED_TYPES,
        allowed_extensions=UPLOAD_ALLOWED_EXTENSIONS,
        jpeg_quality=JPEG_QUALITY,
        webp_quality=WEBP_QUALITY,
        png_zip_level=PNG_ZIP_LEVEL,
    )
    return options.model_copy(update=overrides)
