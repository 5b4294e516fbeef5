import os

import pytest
from PIL import Image, UnidentifiedImageError

from uploadkit.domain.models import UploadOptions
from uploadkit.services.image_processing_service import SUPPORTED_FORMATS


def pillow_detect(path):
    """Detector de tipo para tests: Pillow en lugar de libmagic."""
    try:
        with Image.open(path) as image:
            return SUPPORTED_FORMATS.get(image.format, "application/octet-stream")
    except (UnidentifiedImageError, OSError):
        return "text/plain"


def make_image(path, size=(800, 600), image_format="PNG", color=(200, 30, 30, 255)):
    mode = "RGB" if image_format == "JPEG" else "RGBA"
    fill = color[:3] if mode == "RGB" else color
    with Image.new(mode, size, fill) as image:
        image.save(path, format=image_format)
    return str(path)


@pytest.fixture
def image_factory(tmp_path):
    source_dir = tmp_path / "in"
    source_dir.mkdir()

    def factory(name="photo.png", size=(800, 600), image_format="PNG", color=(200, 30, 30, 255)):
        return make_image(source_dir / name, size, image_format, color)

    return factory


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("hola mundo\n")
    return str(path)


@pytest.fixture
def image_options():
    return UploadOptions(
        allowed_types="image/png,image/jpeg",
        allowed_extensions="png,jpg,jpeg",
    )


@pytest.fixture
def out_dir(tmp_path):
    return os.path.join(str(tmp_path), "out")


@pytest.fixture
def detect():
    return pillow_detect
