from abc import ABC, abstractmethod
from typing import Optional

from uploadkit.domain.enums.upload_enums import ResourceKind
from uploadkit.domain.models import UploadOptions
from uploadkit.infrastructure.local_storage import LocalStorage
from uploadkit.services.image_processing_service import ImagePipeline


class UploadResource(ABC):
    """Capacidades comunes de lo que se sube: copiarse a un destino y liberarse."""

    resource_type: ResourceKind

    def __init__(self, source: str, storage: LocalStorage):
        self.source = source
        self.storage = storage

    @abstractmethod
    def copy_to(self, destination: str) -> str:
        pass

    @abstractmethod
    def free(self) -> None:
        pass


class FileResource(UploadResource):
    resource_type = ResourceKind.FILE

    def copy_to(self, destination: str) -> str:
        return self.storage.copy_file(self.source, destination)

    def free(self) -> None:
        # Un archivo plano no retiene recursos nativos
        pass


class ImageResource(UploadResource):
    """Imagen subida; se decodifica solo cuando se pide una transformación."""

    resource_type = ResourceKind.IMAGE

    def __init__(self, source: str, storage: LocalStorage, options: UploadOptions):
        super().__init__(source, storage)
        self.options = options
        self._pipeline: Optional[ImagePipeline] = None

    @property
    def pipeline(self) -> ImagePipeline:
        if self._pipeline is None:
            self._pipeline = ImagePipeline.open(self.source, self.options, self.storage)
        return self._pipeline

    @property
    def is_transformed(self) -> bool:
        return self._pipeline is not None and self._pipeline.is_transformed

    def copy_to(self, destination: str) -> str:
        # Sin transformar se copian los bytes originales, sin recodificar
        if self.is_transformed:
            return self._pipeline.save_to(destination)
        return self.storage.copy_file(self.source, destination)

    def free(self) -> None:
        if self._pipeline is not None:
            self._pipeline.close()
            self._pipeline = None
