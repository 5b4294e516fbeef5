import hashlib
import os
from unittest.mock import patch

import pytest
from PIL import Image

from uploadkit.domain.enums.upload_enums import ResourceKind, UploadState
from uploadkit.domain.errors import (
    ConfigError, DestinationExistsError, ExtensionNotAllowedError,
    SizeExceededError, UnsupportedFormatError,
)
from uploadkit.domain.models import Dimensions, UploadOptions, UploadRequest
from uploadkit.services.file_service import FileService, open_as_file, open_as_image
from test_remote_file import make_response


def request_for(path, name="My Photo.png"):
    return UploadRequest(source_path=path, declared_name=name)


class TestUploadCoordinator:

    def test_save_keeps_source_until_clear(self, image_factory, image_options, out_dir, detect):
        source = image_factory()
        with open_as_file(request_for(source), image_options, out_dir, detect_type=detect) as uploader:
            destination = uploader.save()
            assert destination == os.path.join(out_dir, "my-photo.png")
            assert os.path.isfile(destination)
            assert os.path.isfile(source)
            assert uploader.state is UploadState.SAVED
        assert not os.path.exists(source)
        assert uploader.state is UploadState.CLEARED

    def test_move_deletes_source(self, image_factory, image_options, out_dir, detect):
        source = image_factory()
        uploader = open_as_file(request_for(source), image_options, out_dir, detect_type=detect)
        destination = uploader.move()
        assert os.path.isfile(destination)
        assert not os.path.exists(source)
        assert uploader.state is UploadState.MOVED

    def test_copy_is_byte_identical(self, image_factory, image_options, out_dir, detect):
        source = image_factory()
        with open(source, "rb") as f:
            original = f.read()
        with open_as_file(request_for(source), image_options, out_dir, detect_type=detect) as uploader:
            destination = uploader.save()
        with open(destination, "rb") as f:
            assert f.read() == original

    def test_save_as(self, image_factory, image_options, out_dir, detect):
        with open_as_file(request_for(image_factory()), image_options, out_dir, detect_type=detect) as uploader:
            assert uploader.save_as("Avatar Final") == os.path.join(out_dir, "avatar-final.png")
            assert uploader.save_as("avatar.jpg") == os.path.join(out_dir, "avatar.jpg")
            assert uploader.save_as("avatar", "Small") == os.path.join(out_dir, "avatar-small.png")

    def test_save_as_rejects_extension(self, image_factory, image_options, out_dir, detect):
        with open_as_file(request_for(image_factory()), image_options, out_dir, detect_type=detect) as uploader:
            with pytest.raises(ExtensionNotAllowedError):
                uploader.save_as("avatar.gif")

    def test_move_as_requires_name(self, image_factory, image_options, out_dir, detect):
        with open_as_file(request_for(image_factory()), image_options, out_dir, detect_type=detect) as uploader:
            with pytest.raises(ConfigError):
                uploader.move_as("  ")

    def test_overwrite_guard(self, image_factory, image_options, out_dir, detect):
        options = image_options.model_copy(update={"overwrite": False, "clear_source": False})
        with open_as_file(request_for(image_factory()), options, out_dir, detect_type=detect) as uploader:
            uploader.save()
            with pytest.raises(DestinationExistsError):
                uploader.save()

    def test_clear_respects_options(self, image_factory, image_options, out_dir, detect):
        source = image_factory()
        options = image_options.model_copy(update={"clear_source": False})
        uploader = open_as_file(request_for(source), options, out_dir, detect_type=detect)
        uploader.clear()
        assert os.path.isfile(source)
        uploader.clear(force=True)
        assert not os.path.exists(source)

    def test_rejected_upload_writes_nothing(self, image_factory, image_options, out_dir, detect):
        options = image_options.model_copy(update={"max_file_size": "100"})
        with pytest.raises(SizeExceededError):
            open_as_file(request_for(image_factory()), options, out_dir, detect_type=detect)
        assert not os.path.exists(out_dir)

    def test_empty_directory(self, image_factory, image_options, detect):
        with pytest.raises(ConfigError):
            open_as_file(request_for(image_factory()), image_options, " ", detect_type=detect)

    def test_source_info(self, image_factory, image_options, out_dir, detect):
        source = image_factory()
        with open_as_file(request_for(source), image_options, out_dir, detect_type=detect) as uploader:
            assert uploader.resource_type is ResourceKind.FILE
            assert uploader.source == source
            assert uploader.source_info == {
                "type": "image/png",
                "name": "my-photo",
                "size": os.path.getsize(source),
                "extension": "png",
            }

    def test_hashed_name(self, image_factory, image_options, out_dir, detect):
        options = image_options.model_copy(update={"hash_mode": "fileName"})
        with open_as_file(request_for(image_factory()), options, out_dir, detect_type=detect) as uploader:
            expected = f"{hashlib.md5(b'my-photo').hexdigest()}.png"
            assert uploader.save() == os.path.join(out_dir, expected)


class TestImageUploadCoordinator:

    def test_resize_and_append_dimensions(self, image_factory, image_options, out_dir, detect):
        with open_as_image(request_for(image_factory()), image_options, out_dir, detect_type=detect) as uploader:
            assert uploader.resource_type is ResourceKind.IMAGE
            uploader.resize(400, -1)
            assert uploader.state is UploadState.TRANSFORMED
            destination = uploader.save(append_new_dimensions=True)
        assert destination == os.path.join(out_dir, "my-photo-400x300.png")
        with Image.open(destination) as image:
            assert image.size == (400, 300)

    def test_crop_save_as(self, image_factory, image_options, out_dir, detect):
        with open_as_image(request_for(image_factory()), image_options, out_dir, detect_type=detect) as uploader:
            uploader.crop(100)
            assert uploader.new_dimensions == Dimensions(width=100, height=100)
            destination = uploader.save_as("thumb", "sq", append_new_dimensions=True)
        assert destination == os.path.join(out_dir, "thumb-100x100-sq.png")

    def test_untransformed_save_copies_bytes(self, image_factory, image_options, out_dir, detect):
        source = image_factory()
        with open(source, "rb") as f:
            original = f.read()
        with open_as_image(request_for(source), image_options, out_dir, detect_type=detect) as uploader:
            assert uploader.new_dimensions is None
            destination = uploader.save()
        with open(destination, "rb") as f:
            assert f.read() == original

    def test_data_url(self, image_factory, image_options, out_dir, detect):
        with open_as_image(request_for(image_factory()), image_options, out_dir, detect_type=detect) as uploader:
            assert uploader.to_data_url().startswith("data:image/png;base64,")

    def test_non_image(self, text_file, out_dir, detect):
        options = UploadOptions(allowed_types="*", allowed_extensions="*")
        with pytest.raises(UnsupportedFormatError):
            open_as_image(request_for(text_file, "notes.txt"), options, out_dir, detect_type=detect)
        assert not os.path.exists(out_dir)


class TestStoreRemote:

    def test_large_body_rejected_before_download(self, tmp_path, detect):
        response = make_response(b"\x00" * (5 * 1024 * 1024))
        options = UploadOptions(allowed_types="*", allowed_extensions="*", max_file_size="1k")
        service = FileService(directory=str(tmp_path / "uploads"), detect_type=detect)
        with patch("uploadkit.infrastructure.remote_file.requests.request", return_value=response):
            with pytest.raises(SizeExceededError):
                service.store_remote("https://example.com/big.png", "remote", options)
        assert response.raw.bytes_read == 0
        assert not (tmp_path / "uploads").exists()
