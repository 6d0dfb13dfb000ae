import posixpath
from enum import Enum
from typing import Any

from s3uploads.errors import Stage, UploadPipelineError
from s3uploads.services.multipart_reader import Part


class PartKind(str, Enum):
    FILE = "file"
    FIELD = "field"


def classify(part: Part) -> PartKind:
    """
    Decide whether a part carries a file or a plain form value.

    Only a non-empty filename counts: browsers send ``filename=""`` for file
    inputs left empty, and those are treated as ordinary (empty) fields.
    """
    if part.filename:
        return PartKind.FILE
    return PartKind.FIELD


def clean_filename(filename: str) -> str:
    """Strip any directory components from a client supplied filename."""
    name = posixpath.basename(filename.replace("\\", "/").rstrip("/"))
    if name in (".", ".."):
        return ""
    return name


def read_string(part: Part) -> str:
    """Drain a field part into a string value."""
    try:
        data = part.read()
    except Exception as e:
        raise UploadPipelineError(Stage.DECODE, "failed to read string part", e) from e
    return data.decode("utf-8", "replace")


def close_part(part: Part, logger: Any) -> None:
    """Close a part, logging (never raising) any failure."""
    try:
        part.close()
    except Exception as e:
        logger.warning(
            "Failed to close part",
            stage=Stage.CLOSE.value,
            field=part.form_name,
            error=str(e)
        )
