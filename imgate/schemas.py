from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    code: int = 0
    message: str = ""
    data: T | None = None


class TokenRequest(BaseModel):
    token: str | None = None


class ListRequest(BaseModel):
    limit: int | None = None
    cursor: str | None = None
    delimiter: str | None = None


class FolderRequest(BaseModel):
    name: str


class DeleteRequest(BaseModel):
    keys: str | None = None


class ObjectItem(BaseModel):
    key: str
    size: int
    url: str
    external_url: str


class ObjectRef(ObjectItem):
    content_type: str
    filename: str | None = None


class ListResult(BaseModel):
    items: list[ObjectItem]
    prefixes: list[str]
    cursor: str | None = None
    truncated: bool = False


class UploadResult(BaseModel):
    accepted: list[ObjectRef] = []
    errors: list[str] = []


class DeleteResult(BaseModel):
    deleted: list[str]
    errors: list[str]
