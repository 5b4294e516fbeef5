import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from uploadkit.domain.enums.image_sizes import ImageSize
from uploadkit.domain.errors import (
    ConfigError, ExtensionNotAllowedError, InvalidUrlError, RemoteFileError,
    SizeExceededError, TypeNotAllowedError, UnsupportedFormatError, UploadError,
)
from uploadkit.domain.schemas.file_schema import ImageUploadRequest, RemoteFetchRequest
from uploadkit.services.file_service import FileService

logger = logging.getLogger(__name__)

router = APIRouter()
file_service = FileService()


def get_file_service() -> FileService:
    return file_service


def to_http_error(e: UploadError) -> HTTPException:
    """Traduce los errores de subida a códigos HTTP."""
    if isinstance(e, ConfigError):
        logger.error(f"Error de configuración: {e}")
        return HTTPException(status_code=500, detail=str(e))
    if isinstance(e, SizeExceededError):
        return HTTPException(status_code=413, detail=str(e))
    if isinstance(e, (TypeNotAllowedError, ExtensionNotAllowedError, UnsupportedFormatError)):
        return HTTPException(status_code=415, detail=str(e))
    if isinstance(e, InvalidUrlError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RemoteFileError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.post("/upload")
async def upload_file(
        folder_name: str = Form(...),
        file: UploadFile = File(...),
        desired_filename: str = Form(None),
        service: FileService = Depends(get_file_service)
):
    """Sube un archivo tal cual, validado contra los tipos y extensiones permitidos."""
    try:
        path = await service.store_file(file, folder_name, desired_filename)
        return {"path": path}
    except UploadError as e:
        raise to_http_error(e)


@router.post("/upload/image")
async def upload_image(
        folder_name: str = Form(...),
        file: UploadFile = File(...),
        desired_filename: str = Form(None),
        image_size: str = Form(None),  # Parámetro opcional para usar el enum
        target_width: int = Form(None),
        target_height: int = Form(None),
        crop: bool = Form(False),
        append_dimensions: bool = Form(False),
        service: FileService = Depends(get_file_service)
):
    """
    Sube una imagen y la redimensiona (o recorta) según un tamaño predefinido.

    Tamaños válidos para el parámetro 'image_size':
    - AVATAR: (256, 256) - recorte cuadrado
    - THUMBNAIL: (150, 150) - recorte cuadrado
    - PROFILE_BANNER: (1200, 600)
    - HEADER_BANNER: (1920, 1080)
    - STORY_BANNER: (1080, 1920)
    - POST_BANNER: (1200, 1200)
    - PREVIEW: (800, 600)
    """
    # Determinar dimensiones (priorizar parámetros específicos)
    width = target_width
    height = target_height

    # Si no se proporcionan dimensiones específicas, usar el enum
    if (width is None or height is None) and image_size:
        try:
            selected_size = ImageSize[image_size]
        except KeyError:
            raise HTTPException(400, f"Tamaño de imagen no válido. Opciones disponibles: {', '.join([size.name for size in ImageSize])}")
        width = selected_size.width
        height = selected_size.height
        crop = crop or selected_size.crop

    # Verificar que tenemos dimensiones válidas
    if width is None or height is None or width <= 0 or height <= 0:
        raise HTTPException(400, "Debe proporcionar dimensiones (target_width y target_height) o un tamaño predefinido (image_size)")

    upload_request = ImageUploadRequest(
        folder_name=folder_name,
        target_width=width,
        target_height=height,
        desired_filename=desired_filename,
        crop=crop,
        append_dimensions=append_dimensions
    )

    try:
        return await service.store_image(file, upload_request)
    except UploadError as e:
        raise to_http_error(e)


@router.post("/remote/fetch")
def fetch_remote(payload: RemoteFetchRequest, service: FileService = Depends(get_file_service)):
    """Descarga un archivo remoto y lo guarda como si se hubiera subido."""
    try:
        return service.store_remote(payload.url, payload.folder_name)
    except UploadError as e:
        raise to_http_error(e)
