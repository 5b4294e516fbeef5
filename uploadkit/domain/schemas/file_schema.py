from pydantic import BaseModel, Field
from typing import Optional

class ImageUploadRequest(BaseModel):
    folder_name: str  # Ej: "profile_images"
    target_width: int = Field(..., gt=0)  # Ej: 800
    target_height: int = Field(..., gt=0)  # Ej: 600
    desired_filename: Optional[str] = None  # Ej: "user_avatar" (sin extensión)
    crop: bool = False  # recorte centrado al tamaño exacto
    append_dimensions: bool = False  # user_avatar-800x600.jpg

class RemoteFetchRequest(BaseModel):
    url: str  # Ej: "https://example.com/logo.png"
    folder_name: str
