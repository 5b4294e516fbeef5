import pytest

from uploadkit.domain.errors import (
    ConfigError, EmptyExtensionError, ExtensionNotAllowedError,
    SizeExceededError, SourceNotFoundError, TypeNotAllowedError,
)
from uploadkit.domain.models import UploadOptions, UploadRequest
from uploadkit.infrastructure import mime
from uploadkit.services.upload_validator import UploadValidator, convert_bytes, format_bytes


def detect_as(mime_type):
    return lambda path: mime_type


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "upload.tmp"
    path.write_bytes(b"\x00" * 1024)
    return str(path)


def png_options(**kwargs):
    return UploadOptions(allowed_types="image/png", allowed_extensions="png", **kwargs)


class TestValidate:

    def test_accepts_png_within_size(self, source):
        request = UploadRequest(source_path=source, declared_name="image.png", declared_size=1024)
        validated = UploadValidator(detect_type=detect_as("image/png")).validate(
            request, png_options(max_file_size="2k"))
        assert validated.extension == "png"
        assert validated.mime_type == "image/png"
        assert validated.size == 1024

    def test_rejects_over_max_size(self, source):
        request = UploadRequest(source_path=source, declared_name="image.png", declared_size=1024)
        with pytest.raises(SizeExceededError):
            UploadValidator(detect_type=detect_as("image/png")).validate(
                request, png_options(max_file_size="512"))

    def test_size_from_filesystem(self, source):
        request = UploadRequest(source_path=source, declared_name="image.png")
        with pytest.raises(SizeExceededError):
            UploadValidator(detect_type=detect_as("image/png")).validate(
                request, png_options(max_file_size=1000))

    @pytest.mark.parametrize("types,extensions", [(None, "png"), ("image/png", None), ("", "")])
    def test_allow_lists_required(self, source, types, extensions):
        request = UploadRequest(source_path=source, declared_name="image.png")
        options = UploadOptions(allowed_types=types, allowed_extensions=extensions)
        with pytest.raises(ConfigError):
            UploadValidator(detect_type=detect_as("image/png")).validate(request, options)

    def test_missing_source(self, tmp_path):
        request = UploadRequest(source_path=str(tmp_path / "nope"), declared_name="image.png")
        with pytest.raises(SourceNotFoundError):
            UploadValidator(detect_type=detect_as("image/png")).validate(request, png_options())

    def test_detected_type_wins_over_hint(self, source):
        request = UploadRequest(source_path=source, declared_name="image.png", mime_hint="image/png")
        with pytest.raises(TypeNotAllowedError):
            UploadValidator(detect_type=detect_as("application/x-php")).validate(request, png_options())

    def test_undetected_type_is_octet_stream(self, source):
        request = UploadRequest(source_path=source, declared_name="image.png")
        with pytest.raises(TypeNotAllowedError, match="application/octet-stream"):
            UploadValidator(detect_type=detect_as(None)).validate(request, png_options())

    def test_extension_not_allowed(self, source):
        request = UploadRequest(source_path=source, declared_name="image.gif")
        with pytest.raises(ExtensionNotAllowedError):
            UploadValidator(detect_type=detect_as("image/png")).validate(request, png_options())

    def test_extension_is_lowercased(self, source):
        request = UploadRequest(source_path=source, declared_name="IMAGE.PNG")
        validated = UploadValidator(detect_type=detect_as("image/png")).validate(request, png_options())
        assert validated.extension == "png"

    def test_extension_from_mime_table(self, source):
        request = UploadRequest(source_path=source, declared_name="image")
        validated = UploadValidator(detect_type=detect_as("image/png")).validate(request, png_options())
        assert validated.extension == "png"

    def test_wildcards(self, source):
        request = UploadRequest(source_path=source, declared_name="report.pdf")
        options = UploadOptions(allowed_types="*", allowed_extensions="*")
        validated = UploadValidator(detect_type=detect_as("application/pdf")).validate(request, options)
        assert validated.extension == "pdf"

    def test_empty_extension_rejected(self, source):
        request = UploadRequest(source_path=source, declared_name="blob")
        options = UploadOptions(allowed_types="*", allowed_extensions="*")
        with pytest.raises(EmptyExtensionError):
            UploadValidator(detect_type=detect_as("application/x-unknown")).validate(request, options)

    def test_empty_extension_allowed(self, source):
        request = UploadRequest(source_path=source, declared_name="blob")
        options = UploadOptions(allowed_types="*", allowed_extensions="*", allow_empty_extensions=True)
        validated = UploadValidator(detect_type=detect_as("application/x-unknown")).validate(request, options)
        assert validated.extension is None

    def test_libmagic_detection(self, image_factory):
        pytest.importorskip("magic")
        path = image_factory("real.png")
        request = UploadRequest(source_path=path, declared_name="real.png")
        validated = UploadValidator().validate(request, png_options())
        assert validated.mime_type == "image/png"


class TestBytes:

    @pytest.mark.parametrize("value,expected", [
        ("2k", 2048),
        ("2m", 2097152),
        ("1g", 1073741824),
        ("512", 512),
        ("1.5k", 1536),
        ("2KB", 2048),
        (4096, 4096),
        (None, 0),
        ("", 0),
    ])
    def test_convert_bytes(self, value, expected):
        assert convert_bytes(value) == expected

    def test_convert_bytes_invalid(self):
        with pytest.raises(ConfigError):
            convert_bytes("two megs")

    @pytest.mark.parametrize("size,expected", [(512, "512B"), (1536, "1.5KB"), (2097152, "2MB")])
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected


class TestMimeTable:

    def test_preferred_extension(self):
        assert mime.get_extension_by_type("image/jpeg") == "jpg"
        assert mime.get_extension_by_type("image/jpeg", 1) == "jpeg"

    def test_unknown_type(self):
        assert mime.get_extension_by_type("application/x-unknown") is None

    def test_type_by_extension(self):
        assert mime.get_type_by_extension(".JPEG") == "image/jpeg"

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            mime.MIME_TYPES["image/png"] = ("x",)
