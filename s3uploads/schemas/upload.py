from typing import Dict, List

from pydantic import BaseModel


class FileDescriptor(BaseModel):
    name: str
    key: str
    content_type: str = ""
    size: int = 0


class UploadedFile(BaseModel):
    key: str
    name: str
    contentType: str
    size: int


class UploadResponse(BaseModel):
    files: List[UploadedFile]
    fields: Dict[str, List[str]]
