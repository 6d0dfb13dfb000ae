from enum import Enum
from typing import Optional


class Stage(str, Enum):
    """Pipeline step an error came from."""

    DECODE = "decode"
    UPLOAD = "upload"
    BUCKET_SETUP = "bucket-setup"
    CLOSE = "close"


class UploadPipelineError(Exception):
    """
    Failure while provisioning the bucket or intercepting a multipart request.

    Callers branch on ``stage``; ``cause`` keeps the underlying exception.
    """

    def __init__(self, stage: Stage, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.stage = stage
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return f"[{self.stage.value}] {self.message}"
        return f"[{self.stage.value}] {self.message}: {self.cause}"
