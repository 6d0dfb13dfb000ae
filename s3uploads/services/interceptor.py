from typing import Iterable

import structlog
from python_multipart.exceptions import MultipartParseError
from starlette.requests import Request

from s3uploads.config import UploadConfig
from s3uploads.errors import Stage, UploadPipelineError
from s3uploads.services.form_values import FormValues
from s3uploads.services.multipart_reader import MultipartReader, Part
from s3uploads.services.parts import PartKind, classify, close_part, read_string
from s3uploads.services.s3_service import S3Service
from s3uploads.services.uploader import FileUploader


class FormInterceptor:
    """
    Turns a multipart body into plain form values, uploading files on the way.

    Construction provisions the bucket (when ``create_bucket`` is set), so a
    misconfigured store fails here instead of on the first request.
    """

    def __init__(self, config: UploadConfig):
        self.config = config
        self.logger = config.logger or structlog.get_logger()
        self.storage = S3Service.from_config(config, log=self.logger)
        if config.create_bucket:
            self.storage.ensure_bucket(config.bucket_acl)
        self.uploader = FileUploader(self.storage, config.prefix_func, log=self.logger)

    def process(self, request: Request, content_type: str, chunks: Iterable[bytes]) -> FormValues:
        """
        Read every part of the body in order and build the form values.

        Blocking: run it off the event loop. Either all parts succeed and the
        full map is returned, or an ``UploadPipelineError`` is raised and
        nothing is returned.
        """
        try:
            reader = MultipartReader.from_content_type(content_type, chunks)
        except MultipartParseError as e:
            raise UploadPipelineError(Stage.DECODE, "failed to create multipart reader", e) from e

        form = FormValues()
        while True:
            try:
                part = reader.next_part()
            except Exception as e:
                raise UploadPipelineError(Stage.DECODE, "failed to read request part", e) from e
            if part is None:
                break
            self.read_part(request, part, form)
        return form

    def read_part(self, request: Request, part: Part, form: FormValues) -> None:
        try:
            if classify(part) is PartKind.FILE:
                descriptor = self._upload(request, part)
                form.add_file(part.form_name, descriptor)
            else:
                form.add(part.form_name, read_string(part))
        finally:
            close_part(part, self.logger)

    def _upload(self, request: Request, part: Part):
        try:
            return self.uploader.upload(request, part)
        except UploadPipelineError as e:
            # a broken body surfaces through the upload client's reads
            if isinstance(e.cause, MultipartParseError):
                raise UploadPipelineError(Stage.DECODE, "failed to read file part", e.cause) from e.cause
            raise
