import base64
import io
import logging
import os
from typing import Optional

from PIL import Image, UnidentifiedImageError

from uploadkit.domain.errors import (
    BackendIOError, ResampleError, SourceNotFoundError, UnsupportedFormatError,
)
from uploadkit.domain.models import CropBox, Dimensions, UploadOptions
from uploadkit.infrastructure.local_storage import LocalStorage
from uploadkit.services.geometry import AUTO, GeometryCalculator

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}
ALPHA_FORMATS = {"PNG", "GIF", "WEBP"}

# Promedio por área, no vecino más cercano
RESAMPLE = Image.Resampling.BOX

TRANSPARENT = (255, 255, 255, 0)


class ImagePipeline:
    """
    Redimensiona y recorta imágenes con Pillow.

    Las operaciones se encadenan: la última imagen destino pasa a ser la fuente
    de la siguiente (ej: pipeline.resize(400, 300).crop(150)).
    Las imágenes se liberan con close() o al salir del bloque `with`.
    """

    def __init__(self, image: Image.Image, image_format: str, options: Optional[UploadOptions] = None,
                 storage: Optional[LocalStorage] = None):
        if image_format not in SUPPORTED_FORMATS:
            raise UnsupportedFormatError(
                f"Formato de imagen no soportado '{image_format}', válidos: {', '.join(SUPPORTED_FORMATS)}"
            )
        self.format = image_format
        self.options = options or UploadOptions()
        self.storage = storage or LocalStorage()
        self._source = image
        self._destination = None
        self._dimensions = Dimensions(width=image.width, height=image.height)

    @classmethod
    def open(cls, path: str, options: Optional[UploadOptions] = None,
             storage: Optional[LocalStorage] = None) -> "ImagePipeline":
        """Decodifica una imagen desde disco."""
        if not os.path.isfile(path):
            raise SourceNotFoundError(f"No existe el archivo fuente: {path}")
        return cls._decode(path, options, storage)

    @classmethod
    def from_bytes(cls, data: bytes, options: Optional[UploadOptions] = None,
                   storage: Optional[LocalStorage] = None) -> "ImagePipeline":
        return cls._decode(io.BytesIO(data), options, storage)

    @classmethod
    def _decode(cls, fp, options, storage) -> "ImagePipeline":
        try:
            image = Image.open(fp)
        except UnidentifiedImageError as e:
            raise UnsupportedFormatError(f"No es una imagen válida: {e}")
        except OSError as e:
            logger.error(f"Error abriendo imagen: {e}")
            raise BackendIOError(str(e))

        try:
            image.load()
            return cls(image, image.format, options, storage)
        except UnsupportedFormatError:
            image.close()
            raise
        except OSError as e:
            image.close()
            raise UnsupportedFormatError(f"No se pudo decodificar la imagen: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def has_alpha(self) -> bool:
        return self.format in ALPHA_FORMATS

    @property
    def mime(self) -> str:
        return SUPPORTED_FORMATS[self.format]

    @property
    def dimensions(self) -> Dimensions:
        """Dimensiones de la imagen original."""
        return self._dimensions

    @property
    def new_dimensions(self) -> Optional[Dimensions]:
        if self._destination is None:
            return None
        return Dimensions(width=self._destination.width, height=self._destination.height)

    @property
    def is_transformed(self) -> bool:
        return self._destination is not None

    def _current(self) -> Image.Image:
        image = self._destination if self._destination is not None else self._source
        if image is None:
            raise ResampleError("La imagen ya fue liberada")
        return image

    @property
    def current_dimensions(self) -> Dimensions:
        image = self._current()
        return Dimensions(width=image.width, height=image.height)

    def resample(self) -> "ImagePipeline":
        return self.resize(AUTO, AUTO, proportional=False)

    def resize(self, width: int = AUTO, height: int = AUTO, proportional: bool = True,
               clamp_to_source: bool = True) -> "ImagePipeline":
        source = self.current_dimensions
        target = GeometryCalculator.resize_dimensions(source, width, height, proportional, clamp_to_source)
        window = (0, 0, source.width, source.height)
        return self._apply(window, target)

    def crop(self, width: int, height: Optional[int] = None, proportional: bool = False,
             x: Optional[int] = None, y: Optional[int] = None) -> "ImagePipeline":
        box = GeometryCalculator.crop_box(self.current_dimensions, width, height, proportional)
        if x is not None or y is not None:
            box = box.model_copy(update={
                "x": x if x is not None else box.x,
                "y": y if y is not None else box.y,
            })
        return self.apply_crop(box)

    def crop_by(self, width: int, height: int, x: int, y: int, proportional: bool = False) -> "ImagePipeline":
        return self.crop(width, height, proportional, x, y)

    def apply_crop(self, box: CropBox) -> "ImagePipeline":
        return self._apply(box.window, box.output)

    def _prepare(self, image: Image.Image) -> Image.Image:
        mode = "RGBA" if self.has_alpha else "RGB"
        return image if image.mode == mode else image.convert(mode)

    def _new_canvas(self, size: Dimensions) -> Image.Image:
        # Lienzo totalmente transparente para formatos con alfa
        if self.has_alpha:
            return Image.new("RGBA", size.as_tuple(), TRANSPARENT)
        return Image.new("RGB", size.as_tuple())

    def _apply(self, window: tuple, size: Dimensions) -> "ImagePipeline":
        current = self._current()
        canvas = prepared = region = resampled = None
        try:
            canvas = self._new_canvas(size)
            prepared = self._prepare(current)
            region = prepared.crop(window)
            resampled = region.resize(size.as_tuple(), RESAMPLE)
            # paste sin máscara reemplaza los píxeles (sin mezcla de alfa)
            canvas.paste(resampled, (0, 0))
        except (ValueError, OSError, MemoryError) as e:
            if canvas is not None:
                canvas.close()
            logger.error(f"Error al remuestrear imagen a {size}: {e}")
            raise ResampleError(f"Error al remuestrear la imagen [error: {e}]")
        finally:
            for image in (prepared, region, resampled):
                if image is not None and image is not current:
                    image.close()

        if self._destination is not None:
            self._source.close()
            self._source = self._destination
        self._destination = canvas
        return self

    def _save_params(self) -> dict:
        if self.format == "JPEG" and self.options.jpeg_quality != -1:
            return {"quality": self.options.jpeg_quality}
        if self.format == "WEBP" and self.options.webp_quality != -1:
            return {"quality": self.options.webp_quality}
        if self.format == "PNG" and self.options.png_zip_level != -1:
            return {"compress_level": self.options.png_zip_level}
        return {}

    def encode(self) -> bytes:
        """Codifica la imagen actual en su formato original."""
        image = self._current()
        buffer = io.BytesIO()
        try:
            image.save(buffer, format=self.format, **self._save_params())
        except (ValueError, OSError) as e:
            logger.error(f"Error codificando imagen {self.format}: {e}")
            raise BackendIOError(f"Error al codificar la imagen [error: {e}]")
        return buffer.getvalue()

    def save_to(self, destination: str) -> str:
        return self.storage.write_bytes(self.encode(), destination)

    def to_base64(self) -> str:
        return base64.b64encode(self.encode()).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime};base64,{self.to_base64()}"

    def close(self) -> None:
        for image in (self._source, self._destination):
            if image is not None:
                image.close()
        self._source = self._destination = None
