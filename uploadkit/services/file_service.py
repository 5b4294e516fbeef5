import logging
import os
import shutil
import tempfile
from typing import Callable, Optional
from urllib.parse import urlparse

from fastapi import UploadFile

from uploadkit.core.config import UPLOAD_DIRECTORY, default_upload_options
from uploadkit.domain.enums.upload_enums import ResourceKind, UploadState
from uploadkit.domain.errors import ConfigError, DestinationExistsError, ExtensionNotAllowedError, UnsupportedFormatError
from uploadkit.domain.models import Dimensions, ResolvedName, UploadOptions, UploadRequest, ValidatedUpload
from uploadkit.domain.schemas.file_schema import ImageUploadRequest
from uploadkit.infrastructure.local_storage import LocalStorage
from uploadkit.infrastructure.remote_file import RemoteFile
from uploadkit.services.image_processing_service import SUPPORTED_FORMATS
from uploadkit.services.name_sanitizer import NameSanitizer, clean
from uploadkit.services.resources import FileResource, ImageResource, UploadResource
from uploadkit.services.upload_validator import UploadValidator, convert_bytes, extension_of, is_allowed

logger = logging.getLogger(__name__)

Detector = Callable[[str], Optional[str]]


class UploadCoordinator:
    """
    Ciclo de vida de una subida: Validated -> (Transformed) -> Saved|Moved -> Cleared.

    La validación ocurre en el constructor: una subida rechazada nunca
    deja archivos en el destino.
    """

    def __init__(self, request: UploadRequest, resource: UploadResource, options: UploadOptions,
                 directory: str, storage: LocalStorage, validator: UploadValidator,
                 sanitizer: NameSanitizer):
        directory = (directory or "").strip()
        if not directory:
            raise ConfigError("El directorio de destino no puede estar vacío")

        self.validated: ValidatedUpload = validator.validate(request, options)
        self._accept(self.validated)
        self.request = request
        self.resource = resource
        self.options = options
        self.storage = storage
        self.sanitizer = sanitizer

        base = sanitizer.sanitize(request.declared_name, None, options, request.source_path)
        self.name = ResolvedName(base_name=base.base_name, extension=self.validated.extension)
        self.directory = storage.ensure_directory(directory)
        self.state = UploadState.VALIDATED

        logger.info(f"Subida validada: {request.declared_name} ({self.validated.mime_type}, {self.validated.size} bytes)")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.clear()

    def _accept(self, validated: ValidatedUpload) -> None:
        """Chequeo propio del tipo de recurso, antes de tocar el destino."""
        pass

    @property
    def source(self) -> str:
        return self.request.source_path

    @property
    def resource_type(self) -> ResourceKind:
        return self.resource.resource_type

    @property
    def source_info(self) -> dict:
        return {
            "type": self.validated.mime_type,
            "name": self.name.base_name,
            "size": self.validated.size,
            "extension": self.name.extension,
        }

    def destination(self, name: Optional[str] = None, appendix: Optional[str] = None) -> str:
        """Ruta destino con o sin nombre/sufijo dados en tiempo de ejecución (save_as, move_as)."""
        extension = self.name.extension

        if name is not None:
            # Un nombre con extensión la reemplaza, y se vuelve a validar
            if name.find(".") > 0:
                extension = extension_of(name)
                if extension and not is_allowed(extension, self.options.allowed_extensions):
                    raise ExtensionNotAllowedError(
                        f"Extensión '{extension}' no permitida, extensiones permitidas: "
                        f"'{self.options.allowed_extensions}'"
                    )
            base_name = self.sanitizer.sanitize(name, appendix, self.options, self.source).base_name
        else:
            base_name = self.name.base_name
            if appendix and clean(appendix):
                base_name = f"{base_name}-{clean(appendix)}"

        file_name = f"{base_name}.{extension}" if extension else base_name
        return os.path.join(self.directory, file_name)

    def _check_name(self, name: str) -> None:
        if not name or not name.strip():
            raise ConfigError("El nombre no puede estar vacío")

    def _write(self, destination: str, state: UploadState) -> str:
        if not self.options.overwrite and self.storage.exists(destination):
            raise DestinationExistsError(f"El destino ya existe: {destination}")

        self.resource.copy_to(destination)
        self.state = state
        logger.info(f"Archivo guardado en {destination}")
        return destination

    def _delete_source(self) -> None:
        # Best-effort: un fallo al borrar no invalida el movimiento
        if not self.storage.delete_file(self.source):
            logger.warning(f"No se pudo eliminar el archivo fuente {self.source}")

    def save(self) -> str:
        return self._write(self.destination(), UploadState.SAVED)

    def save_as(self, name: str, appendix: Optional[str] = None) -> str:
        self._check_name(name)
        return self._write(self.destination(name, appendix), UploadState.SAVED)

    def move(self) -> str:
        destination = self._write(self.destination(), UploadState.MOVED)
        self._delete_source()
        return destination

    def move_as(self, name: str, appendix: Optional[str] = None) -> str:
        self._check_name(name)
        destination = self._write(self.destination(name, appendix), UploadState.MOVED)
        self._delete_source()
        return destination

    def clear(self, force: bool = False) -> None:
        """
        Limpia fuente y recursos.
        - force=True: siempre borra la fuente y libera las imágenes
        - force=False: respeta las opciones clear_source y clear
        """
        if force or self.options.clear_source:
            self.storage.delete_file(self.source)
        if force or self.options.clear:
            self.resource.free()
        self.state = UploadState.CLEARED


class ImageUploadCoordinator(UploadCoordinator):
    resource: ImageResource

    def _accept(self, validated: ValidatedUpload) -> None:
        if validated.mime_type not in SUPPORTED_FORMATS.values():
            raise UnsupportedFormatError(
                f"Tipo de imagen no soportado '{validated.mime_type}', válidos: JPEG, PNG, GIF, WEBP"
            )

    def resample(self) -> "ImageUploadCoordinator":
        self.resource.pipeline.resample()
        self.state = UploadState.TRANSFORMED
        return self

    def resize(self, width: int = -1, height: int = -1, proportional: bool = True,
               clamp_to_source: bool = True) -> "ImageUploadCoordinator":
        self.resource.pipeline.resize(width, height, proportional, clamp_to_source)
        self.state = UploadState.TRANSFORMED
        return self

    def crop(self, width: int, height: Optional[int] = None, proportional: bool = False,
             x: Optional[int] = None, y: Optional[int] = None) -> "ImageUploadCoordinator":
        self.resource.pipeline.crop(width, height, proportional, x, y)
        self.state = UploadState.TRANSFORMED
        return self

    def crop_by(self, width: int, height: int, x: int, y: int,
                proportional: bool = False) -> "ImageUploadCoordinator":
        return self.crop(width, height, proportional, x, y)

    @property
    def dimensions(self) -> Dimensions:
        return self.resource.pipeline.dimensions

    @property
    def new_dimensions(self) -> Optional[Dimensions]:
        return self.resource.pipeline.new_dimensions if self.resource.is_transformed else None

    def _dimensions_appendix(self, appendix: Optional[str]) -> Optional[str]:
        dimensions = self.new_dimensions or self.dimensions
        return f"{dimensions}-{appendix}" if appendix else str(dimensions)

    def save(self, append_new_dimensions: bool = False) -> str:
        appendix = self._dimensions_appendix(None) if append_new_dimensions else None
        return self._write(self.destination(None, appendix), UploadState.SAVED)

    def save_as(self, name: str, appendix: Optional[str] = None,
                append_new_dimensions: bool = False) -> str:
        self._check_name(name)
        if append_new_dimensions:
            appendix = self._dimensions_appendix(appendix)
        return self._write(self.destination(name, appendix), UploadState.SAVED)

    def to_base64(self) -> str:
        return self.resource.pipeline.to_base64()

    def to_data_url(self) -> str:
        return self.resource.pipeline.to_data_url()


def _services(storage: Optional[LocalStorage], detect_type: Optional[Detector]):
    storage = storage or LocalStorage()
    return storage, UploadValidator(storage, detect_type), NameSanitizer(storage)


def open_as_file(request: UploadRequest, options: UploadOptions, directory: str,
                 storage: Optional[LocalStorage] = None,
                 detect_type: Optional[Detector] = None) -> UploadCoordinator:
    storage, validator, sanitizer = _services(storage, detect_type)
    resource = FileResource(request.source_path, storage)
    return UploadCoordinator(request, resource, options, directory, storage, validator, sanitizer)


def open_as_image(request: UploadRequest, options: UploadOptions, directory: str,
                  storage: Optional[LocalStorage] = None,
                  detect_type: Optional[Detector] = None) -> ImageUploadCoordinator:
    storage, validator, sanitizer = _services(storage, detect_type)
    resource = ImageResource(request.source_path, storage, options)
    return ImageUploadCoordinator(request, resource, options, directory, storage, validator, sanitizer)


class FileService:
    """Recibe archivos del API, los valida y los deja en el directorio de subidas."""

    def __init__(self, directory: str = UPLOAD_DIRECTORY, storage: Optional[LocalStorage] = None,
                 detect_type: Optional[Detector] = None):
        self.directory = directory
        self.storage = storage or LocalStorage()
        self.detect_type = detect_type

    def _folder(self, folder_name: str) -> str:
        # Cada segmento se limpia: ".." y "/" no sobreviven
        segments = [clean(segment) for segment in folder_name.replace("\\", "/").split("/")]
        segments = [segment for segment in segments if segment]
        if not segments:
            raise ConfigError(f"Nombre de carpeta inválido: '{folder_name}'")
        return os.path.join(self.directory, *segments)

    async def _spool(self, file: UploadFile) -> str:
        """Vuelca el UploadFile a un archivo temporal y devuelve su ruta."""
        suffix = os.path.splitext(file.filename or "")[1]
        with tempfile.NamedTemporaryFile("wb", delete=False, suffix=suffix) as tmp:
            await file.seek(0)
            shutil.copyfileobj(file.file, tmp)
            return tmp.name

    def _request(self, path: str, file: UploadFile) -> UploadRequest:
        return UploadRequest(
            source_path=path,
            declared_name=file.filename or os.path.basename(path),
            declared_size=file.size,
            mime_hint=file.content_type,
        )

    async def store_file(self, file: UploadFile, folder_name: str,
                         desired_filename: Optional[str] = None,
                         options: Optional[UploadOptions] = None) -> str:
        options = options or default_upload_options()
        path = await self._spool(file)
        try:
            with open_as_file(self._request(path, file), options, self._folder(folder_name),
                              self.storage, self.detect_type) as uploader:
                if desired_filename:
                    return uploader.move_as(desired_filename)
                return uploader.move()
        finally:
            self.storage.delete_file(path)
            await file.close()

    async def store_image(self, file: UploadFile, request: ImageUploadRequest,
                          options: Optional[UploadOptions] = None) -> dict:
        options = options or default_upload_options()
        path = await self._spool(file)
        try:
            with open_as_image(self._request(path, file), options, self._folder(request.folder_name),
                               self.storage, self.detect_type) as uploader:
                self._transform(uploader, request)
                if request.desired_filename:
                    destination = uploader.save_as(request.desired_filename,
                                                   append_new_dimensions=request.append_dimensions)
                else:
                    destination = uploader.save(append_new_dimensions=request.append_dimensions)
                dimensions = uploader.new_dimensions
                return {"path": destination, "width": dimensions.width, "height": dimensions.height}
        finally:
            self.storage.delete_file(path)
            await file.close()

    @staticmethod
    def _transform(uploader: ImageUploadCoordinator, request: ImageUploadRequest) -> None:
        width, height = request.target_width, request.target_height
        if not request.crop:
            uploader.resize(width, height)
            return

        # Recorte tipo "cover": el lado corto se ajusta a la caja y luego se recorta al centro
        source = uploader.dimensions
        if source.width * height > source.height * width:
            uploader.resize(-1, height)
        else:
            uploader.resize(width, -1)
        uploader.crop(width, height)

    def store_remote(self, url: str, folder_name: str, options: Optional[UploadOptions] = None) -> dict:
        """Descarga un archivo remoto y lo pasa por la misma validación que una subida."""
        options = options or default_upload_options()
        with RemoteFile(url) as remote:
            remote.open()
            # El límite se aplica antes y durante la descarga
            max_file_size = convert_bytes(options.max_file_size)
            remote.check_size(max_file_size)
            declared_name = os.path.basename(urlparse(url).path)
            if not extension_of(declared_name) and remote.extension:
                declared_name = f"{declared_name or 'remote'}.{remote.extension}"

            fd, path = tempfile.mkstemp()
            os.close(fd)
            try:
                remote.save(path, force=True, max_size=max_file_size)
                request = UploadRequest(source_path=path, declared_name=declared_name or "remote",
                                        mime_hint=remote.mime)
                with open_as_file(request, options, self._folder(folder_name),
                                  self.storage, self.detect_type) as uploader:
                    destination = uploader.move()
                    return {"path": destination, "mime": uploader.validated.mime_type}
            finally:
                self.storage.delete_file(path)
