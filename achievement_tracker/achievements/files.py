"""
File storage collaborator.

The lifecycle engine hands raw bytes to a FileStorage and keeps only the
returned Attachment descriptor in the content store.
"""

from __future__ import annotations

import re
import secrets
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path, PurePath
from typing import Tuple

from pydantic import BaseModel, ConfigDict, constr

from .primitives import utc_now
from .schemas import Attachment

DEFAULT_MIME_TYPE = "application/octet-stream"


class FileMetadata(BaseModel):
    """What the caller knows about an uploaded file."""

    model_config = ConfigDict(extra="forbid")

    namespace: constr(min_length=1, max_length=128)
    file_name: str
    mime_type: str = DEFAULT_MIME_TYPE


def safe_file_name(raw: str) -> str:
    """Reduce a client-supplied name to ``[A-Za-z0-9._-]``.

    Directory components are dropped. Falls back to a random name when
    nothing usable is left.
    """
    base = PurePath(raw.replace("\\", "/")).name
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "_", base).strip("._")[-200:]
    return cleaned or f"file_{secrets.token_hex(4)}"


def clean_mime_type(raw: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9/+.-]", "", raw or "")
    return cleaned if "/" in cleaned else DEFAULT_MIME_TYPE


class FileStorage(ABC):
    """Abstract base class for attachment storage."""

    @abstractmethod
    def store(self, data: bytes, metadata: FileMetadata) -> Attachment:
        """Persist ``data`` and return its descriptor."""

    @abstractmethod
    def remove(self, attachment: Attachment) -> None:
        """Remove a stored file. Missing files are ignored."""


class LocalFileStorage(FileStorage):
    """Local filesystem storage.

    Structure:
        {base_path}/{namespace}/{YYYYmmdd_HHMMSS}_{random}_{safe name}
    """

    def __init__(self, base_path: Path, url_prefix: str = "/uploads/achievements"):
        self.base_path = Path(base_path)
        self.url_prefix = url_prefix.rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _target(
        self, metadata: FileMetadata, file_name: str, uploaded_at: datetime
    ) -> Tuple[Path, str]:
        namespace = safe_file_name(metadata.namespace)
        unique_name = "_".join(
            (
                uploaded_at.strftime("%Y%m%d_%H%M%S"),
                secrets.token_hex(4),
                file_name,
            )
        )
        relative = f"{namespace}/{unique_name}"
        return self.base_path / relative, relative

    def store(self, data: bytes, metadata: FileMetadata) -> Attachment:
        uploaded_at = utc_now()
        file_name = safe_file_name(metadata.file_name)
        full_path, relative = self._target(metadata, file_name, uploaded_at)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(data)
        return Attachment(
            file_name=file_name,
            file_url=f"{self.url_prefix}/{relative}",
            mime_type=clean_mime_type(metadata.mime_type),
            size_bytes=len(data),
            uploaded_at=uploaded_at,
        )

    def remove(self, attachment: Attachment) -> None:
        prefix = f"{self.url_prefix}/"
        if not attachment.file_url.startswith(prefix):
            return
        path = self.base_path / attachment.file_url[len(prefix):]
        path.unlink(missing_ok=True)


class FileUpload(BaseModel):
    """One file received from a caller, before it is stored."""

    model_config = ConfigDict(extra="forbid")

    file_name: str
    content: bytes
    mime_type: str = DEFAULT_MIME_TYPE
