"""Tests for upload validation, storage naming and local deletion guards."""

import re

import pytest

from petshop.core.errors import UploadError
from petshop.models.product import FALLBACK_IMAGE
from petshop.services.uploads import (
    delete_if_local,
    save_uploaded_file,
    upload_dir_for,
    validate_upload,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestValidateUpload:
    def test_size_checked_before_mime_and_extension(self):
        with pytest.raises(UploadError) as exc:
            validate_upload("evil.exe", 3 * 1024 * 1024, "application/x-msdownload", max_bytes=2 * 1024 * 1024)
        assert exc.value.code == "FILE_TOO_LARGE"

    def test_mime_checked_before_extension(self):
        with pytest.raises(UploadError) as exc:
            validate_upload("photo.exe", 10, "text/plain")
        assert exc.value.code == "INVALID_MIME"

    def test_extension_checked_without_mime(self):
        with pytest.raises(UploadError) as exc:
            validate_upload("photo.gif", 10, None)
        assert exc.value.code == "INVALID_EXT"

    @pytest.mark.parametrize("filename", ["a.JPG", "b.jpeg", "c.png", "d.webp", "e.avif"])
    def test_allowed_extensions(self, filename):
        assert validate_upload(filename, 10, None) == filename.rsplit(".", 1)[1].lower()

    def test_upload_error_is_bad_request(self):
        assert UploadError("INVALID_EXT").status_code == 400


class TestSave:
    def test_writes_file_with_timestamp_and_slug(self, tmp_path):
        result = save_uploaded_file(
            PNG_BYTES, "Mi Foto.PNG", "image/png", upload_dir_for("product"),
            base_name="Collar Rojo Ñandú", root=str(tmp_path),
        )

        assert re.fullmatch(r"/items/\d{13}-collar-rojo-nandu\.png", result.relative_path)
        assert result.absolute_path.read_bytes() == PNG_BYTES
        assert result.absolute_path.parent == tmp_path / "items"

    def test_base_name_defaults_to_file_stem(self, tmp_path):
        result = save_uploaded_file(PNG_BYTES, "perro feliz.webp", None, "media/uploads", root=str(tmp_path))
        assert result.filename.endswith("-perro-feliz.webp")

    def test_kind_directories(self):
        assert upload_dir_for("product") == "items"
        assert upload_dir_for("category") == "media/categories"
        assert upload_dir_for("banner") == "media/uploads"
        assert upload_dir_for(None) == "media/uploads"

    def test_rejected_upload_writes_nothing(self, tmp_path):
        with pytest.raises(UploadError):
            save_uploaded_file(b"x", "notes.txt", "text/plain", "items", root=str(tmp_path))
        assert not (tmp_path / "items").exists()


class TestDeleteIfLocal:
    def test_deletes_stored_file(self, tmp_path):
        saved = save_uploaded_file(PNG_BYTES, "a.png", "image/png", "items", root=str(tmp_path))
        assert delete_if_local(saved.relative_path, root=str(tmp_path)) is True
        assert not saved.absolute_path.exists()

    @pytest.mark.parametrize(
        "path",
        [None, "", FALLBACK_IMAGE, "https://cdn.example.com/a.png", "//cdn.example.com/a.png",
         "items/a.png", "/../outside.png", "/missing.png"],
    )
    def test_ignores_unsafe_or_foreign_paths(self, tmp_path, path):
        outside = tmp_path.parent / "outside.png"
        outside.write_bytes(b"keep")
        root = tmp_path / "public"
        root.mkdir(exist_ok=True)

        assert delete_if_local(path, root=str(root)) is False
        assert outside.exists()

    def test_never_deletes_fallback_image(self, tmp_path):
        fallback = tmp_path / FALLBACK_IMAGE.lstrip("/")
        fallback.parent.mkdir(parents=True)
        fallback.write_bytes(b"img")
        assert delete_if_local(FALLBACK_IMAGE, root=str(tmp_path)) is False
        assert fallback.exists()
