import mimetypes
import uuid
from typing import Any, Callable

import structlog
from starlette.requests import Request

from s3uploads.schemas.upload import FileDescriptor
from s3uploads.services.multipart_reader import Part
from s3uploads.services.parts import clean_filename
from s3uploads.services.s3_service import S3Service
from s3uploads.services.sniffer import UNKNOWN_TYPE, CountingSniffer

logger = structlog.get_logger()


def unique_suffix() -> str:
    return str(uuid.uuid4())


class FileUploader:
    """Streams file parts to S3 and describes what was stored."""

    def __init__(self, storage: S3Service, prefix_func: Callable[[Request], str], log: Any = None):
        self.storage = storage
        self.prefix_func = prefix_func
        self.logger = log or logger

    def object_key(self, request: Request) -> str:
        return self.prefix_func(request) + unique_suffix()

    def upload(self, request: Request, part: Part) -> FileDescriptor:
        """
        Upload one file part and return its descriptor.

        The part is read exactly once, through a ``CountingSniffer``, so the
        size and detected type come for free while the bytes go out to S3.
        When the file header does not match a known signature the type is
        guessed from the filename extension instead.

        Args:
            request: Incoming request, handed to the key prefix function
            part: File part positioned at the start of its body

        Returns:
            FileDescriptor with key, cleaned name, type and size

        Raises:
            UploadPipelineError: If the upload fails (never retried)
        """
        descriptor = FileDescriptor(
            name=clean_filename(part.filename or ""),
            key=self.object_key(request)
        )

        counter = CountingSniffer(part)
        self.storage.upload_stream(descriptor.key, counter)

        descriptor.size = counter.count
        descriptor.content_type = counter.resolve()
        if descriptor.content_type == UNKNOWN_TYPE:
            guessed, _ = mimetypes.guess_type(descriptor.name)
            if guessed:
                descriptor.content_type = guessed

        self.logger.info(
            "Uploaded file to S3",
            field=part.form_name,
            filename=descriptor.name,
            key=descriptor.key,
            content_type=descriptor.content_type,
            size=descriptor.size
        )
        return descriptor
