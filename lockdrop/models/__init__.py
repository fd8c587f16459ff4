from .drop import (
    ShortenResponse,
    SearchResponse,
    VerifyRequest,
    VerifyResponse,
    DropRecord,
    DropUpdate,
    FileAction,
)
from .auth import LoginRequest, LoginResponse
from .admin import DropList, DropUpdated, DropDeleted

__all__ = [
    # Drop
    "ShortenResponse",
    "SearchResponse",
    "VerifyRequest",
    "VerifyResponse",
    "DropRecord",
    "DropUpdate",
    "FileAction",
    # Auth
    "LoginRequest",
    "LoginResponse",
    # Admin
    "DropList",
    "DropUpdated",
    "DropDeleted",
]
