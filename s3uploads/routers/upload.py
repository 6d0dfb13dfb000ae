from fastapi import APIRouter, HTTPException, Request
from s3uploads.schemas.upload import UploadedFile, UploadResponse
from s3uploads.services.form_values import NAME_SUFFIX, SIZE_SUFFIX, TYPE_SUFFIX
import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/uploads", tags=["upload"])


@router.post("", response_model=UploadResponse)
async def receive_uploads(request: Request, field: str = "file"):
    """
    Describe the files uploaded under a form field.

    The S3 upload middleware has already stored the files; this endpoint
    only reads the form values it left behind.

    Args:
        request: Request with the rewritten form body
        field: Name of the file input (default: "file")

    Returns:
        Uploaded files plus the remaining plain fields
    """
    form = await request.form()
    file_keys = {field, field + NAME_SUFFIX, field + TYPE_SUFFIX, field + SIZE_SUFFIX}

    keys = form.getlist(field)
    names = form.getlist(field + NAME_SUFFIX)
    types = form.getlist(field + TYPE_SUFFIX)
    sizes = form.getlist(field + SIZE_SUFFIX)
    if not len(keys) == len(names) == len(types) == len(sizes):
        logger.warning("Incomplete file metadata", field=field)
        raise HTTPException(status_code=400, detail=f"Field {field!r} is not an uploaded file")

    files = [
        UploadedFile(key=key, name=name, contentType=ctype, size=int(size))
        for key, name, ctype, size in zip(keys, names, types, sizes)
    ]
    fields = {
        key: [str(value) for value in form.getlist(key)]
        for key in form.keys()
        if key not in file_keys
    }

    logger.info("Received uploads", field=field, count=len(files))

    return UploadResponse(files=files, fields=fields)
