"""Tests for local attachment storage."""

from achievement_tracker.achievements.files import (
    DEFAULT_MIME_TYPE,
    FileMetadata,
    clean_mime_type,
    safe_file_name,
)


class TestSafeFileName:
    def test_keeps_safe_names(self):
        assert safe_file_name("certificate-2025.pdf") == "certificate-2025.pdf"

    def test_drops_directories(self):
        assert safe_file_name("../../etc/passwd") == "passwd"
        assert safe_file_name("C:\\Users\\me\\photo.png") == "photo.png"

    def test_replaces_unsafe_characters(self):
        assert safe_file_name("my award (final).pdf") == "my_award__final_.pdf"

    def test_falls_back_to_random_name(self):
        name = safe_file_name("...")
        assert name.startswith("file_")
        assert len(name) == len("file_") + 8

    def test_long_names_are_truncated(self):
        assert len(safe_file_name("a" * 500 + ".pdf")) == 200


class TestCleanMimeType:
    def test_valid(self):
        assert clean_mime_type("application/pdf") == "application/pdf"

    def test_missing_slash_uses_default(self):
        assert clean_mime_type("pdf") == DEFAULT_MIME_TYPE

    def test_empty_uses_default(self):
        assert clean_mime_type("") == DEFAULT_MIME_TYPE


class TestLocalFileStorage:
    """Tests for LocalFileStorage."""

    def test_store_writes_file(self, file_storage, tmp_path):
        attachment = file_storage.store(
            b"%PDF-1.7",
            FileMetadata(namespace="ref-1", file_name="award.pdf", mime_type="application/pdf"),
        )

        assert attachment.file_name == "award.pdf"
        assert attachment.mime_type == "application/pdf"
        assert attachment.size_bytes == 8
        assert attachment.file_url.startswith("/uploads/achievements/ref-1/")
        assert attachment.file_url.endswith("_award.pdf")

        relative = attachment.file_url[len("/uploads/achievements/"):]
        assert (tmp_path / "uploads" / relative).read_bytes() == b"%PDF-1.7"

    def test_same_name_twice_gets_distinct_paths(self, file_storage):
        metadata = FileMetadata(namespace="ref-1", file_name="photo.jpg")
        first = file_storage.store(b"one", metadata)
        second = file_storage.store(b"two", metadata)
        assert first.file_url != second.file_url

    def test_remove(self, file_storage, tmp_path):
        attachment = file_storage.store(
            b"data", FileMetadata(namespace="ref-1", file_name="notes.txt")
        )
        relative = attachment.file_url[len("/uploads/achievements/"):]

        file_storage.remove(attachment)
        assert not (tmp_path / "uploads" / relative).exists()

        # Removing twice is harmless
        file_storage.remove(attachment)
