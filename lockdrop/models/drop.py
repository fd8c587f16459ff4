from enum import Enum

from pydantic import Field

from .base import CamelModel


class ShortenResponse(CamelModel):
    """Response model after creating a drop."""
    success: bool = True
    short_id: str = Field(..., description="Public short identifier")
    serial_number: int = Field(..., description="Sequential number for lookup")
    short_url: str = Field(..., description="Full URL of the verification page")


class SearchResponse(CamelModel):
    """Response model for a serial number lookup. Never carries content."""
    success: bool = True
    short_id: str
    serial_number: int
    label: str = ""


class VerifyRequest(CamelModel):
    """Request model for unlocking a drop."""
    password: str | None = Field(None, description="Password in plain text")


class VerifyResponse(CamelModel):
    """Response model after a successful password check."""
    success: bool = True
    text_content: str
    has_file: bool = False
    file_name: str | None = None
    download_url: str | None = Field(None, description="Present only when a file is attached")


class DropRecord(CamelModel):
    """A drop as shown to the admin (no password hash, no storage name)."""
    id: int
    short_id: str
    serial_number: int
    text_content: str
    label: str = ""
    file_name: str | None = None
    has_file: bool = False
    download_count: int = 0
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: dict) -> "DropRecord":
        return cls(
            id=row["id"],
            short_id=row["short_id"],
            serial_number=row["serial_number"],
            text_content=row["text_content"],
            label=row["label"],
            file_name=row["file_name"],
            has_file=row["file_storage_name"] is not None,
            download_count=row["download_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class FileAction(str, Enum):
    KEEP = "keep"
    REMOVE = "remove"
    REPLACE = "replace"


class DropUpdate(CamelModel):
    """Partial admin edit. ``None`` means the field is left unchanged."""
    label: str | None = None
    text_content: str | None = None
    file_action: FileAction = FileAction.KEEP
