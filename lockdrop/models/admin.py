from pydantic import BaseModel

from .drop import DropRecord


class DropList(BaseModel):
    success: bool = True
    urls: list[DropRecord]


class DropUpdated(BaseModel):
    success: bool = True
    url: DropRecord


class DropDeleted(BaseModel):
    success: bool = True
    message: str = "URL deleted successfully."
