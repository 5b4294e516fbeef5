from pydantic import BaseModel, ConfigDict
from typing import Optional, Union

# Config base para los value objects inmutables
frozen_config = ConfigDict(frozen=True)


class UploadRequest(BaseModel):
    """Resultado del parseo multipart del servidor web. Se consume una sola vez."""
    model_config = frozen_config
    source_path: str
    declared_name: str
    declared_size: Optional[int] = None  # None: se toma del sistema de archivos
    mime_hint: Optional[str] = None


class UploadOptions(BaseModel):
    hash_mode: Optional[str] = None          # none, rand, file o fileName
    hash_length: Optional[int] = None        # 8, 16, 32 o 40 (32 por defecto)
    max_file_size: Optional[Union[int, str]] = None  # 2048, "2048k", "2m" ...
    allowed_types: Optional[str] = None      # "*" o "image/jpeg,image/png"
    allowed_extensions: Optional[str] = None  # "*" o "jpg,jpeg,png"
    allow_empty_extensions: bool = False
    clear: bool = True         # liberar imágenes en clear()
    clear_source: bool = True  # borrar el archivo fuente en clear()
    overwrite: bool = True     # False activa DestinationExistsError
    jpeg_quality: int = -1     # -1: valor por defecto del backend
    webp_quality: int = -1
    png_zip_level: int = -1
    png_filters: int = -1


class ResolvedName(BaseModel):
    model_config = frozen_config
    base_name: str
    extension: Optional[str] = None


class ValidatedUpload(BaseModel):
    model_config = frozen_config
    mime_type: str
    extension: Optional[str] = None
    size: int


class Dimensions(BaseModel):
    model_config = frozen_config
    width: int
    height: int

    def as_tuple(self) -> tuple:
        return self.width, self.height

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class CropBox(BaseModel):
    """
    Región de recorte.
    - (x, y): origen de la ventana de muestreo en la imagen fuente
    - window_width/window_height: tamaño de esa ventana
    - width/height: tamaño del lienzo final
    Los límites no se validan; un origen fuera de rango es responsabilidad del llamador.
    """
    model_config = frozen_config
    x: int
    y: int
    width: int
    height: int
    window_width: int
    window_height: int

    @property
    def window(self) -> tuple:
        """Caja (left, upper, right, lower) en el formato de Pillow."""
        return (self.x, self.y, self.x + self.window_width, self.y + self.window_height)

    @property
    def output(self) -> Dimensions:
        return Dimensions(width=self.width, height=self.height)
