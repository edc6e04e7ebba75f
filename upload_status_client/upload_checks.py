from typing import Optional

from pydantic import BaseModel
from upload_status_client.destinations import with_query

ACCEPTED_CONTENT_TYPE = "text/xml"
MAX_UPLOAD_MEGABYTES = 50


class UploadRejection(BaseModel):
    error_code: Optional[int] = None
    reason: str


def check_upload(
    filename: Optional[str], content_type: Optional[str], size_bytes: int
) -> Optional[UploadRejection]:
    """Check the selected file before it is submitted, without reading its contents"""
    if not filename:
        return UploadRejection(reason="no-file")
    if content_type != ACCEPTED_CONTENT_TYPE:
        return UploadRejection(error_code=415, reason="file-type")
    if size_bytes / (1024 * 1024) > MAX_UPLOAD_MEGABYTES:
        return UploadRejection(error_code=413, reason="too-large")
    return None


def rejection_url(handle_error: str, rejection: UploadRejection) -> Optional[str]:
    if rejection.error_code is None:
        return None
    return with_query(handle_error, errorCode=rejection.error_code, reason=rejection.reason)
