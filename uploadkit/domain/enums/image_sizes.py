from enum import Enum


class ImageSize(Enum):
    """
    Tamaños predefinidos para imágenes subidas.
    - El tercer valor indica si el preset recorta (True) o solo redimensiona.
    - Los presets que solo redimensionan nunca agrandan la imagen original.
    """

    # Avatar (cuadrado, recortado al centro)
    AVATAR = (256, 256, True)

    # Miniatura (cuadrada, recortada al centro)
    THUMBNAIL = (150, 150, True)

    # Banner de perfil
    PROFILE_BANNER = (1200, 600, False)  # 2:1

    # Banner para cabecera
    HEADER_BANNER = (1920, 1080, False)  # 16:9

    # Historias (vertical)
    STORY_BANNER = (1080, 1920, False)  # 9:16

    # Publicaciones
    POST_BANNER = (1200, 1200, False)  # 1:1

    # Vista previa en listados
    PREVIEW = (800, 600, False)  # 4:3

    @property
    def width(self) -> int:
        return self.value[0]

    @property
    def height(self) -> int:
        return self.value[1]

    @property
    def crop(self) -> bool:
        """True si el preset se aplica como recorte centrado."""
        return self.value[2]
