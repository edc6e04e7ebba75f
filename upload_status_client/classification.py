from typing import Any, Optional

from upload_status_client.models import JobReference, Outcome, StatusPollingConfig

READY = 202
SAFETY_CHECK_FAILED = 409
BAD_REQUEST = 400


def classify_response(
    status_code: int,
    payload: Any,
    job_reference: JobReference,
    config: StatusPollingConfig,
) -> Optional[Outcome]:
    """Classify one status-check response, None means the upload is still processing"""
    if status_code == READY:
        return Outcome.ready
    if status_code == SAFETY_CHECK_FAILED:
        return Outcome.rejected_as_unsafe
    if status_code == BAD_REQUEST:
        if config.distinguish_bad_request:
            return Outcome.bad_request
        return Outcome.transport_error
    if not 200 <= status_code < 400:
        return Outcome.transport_error

    body_status = _body_status(payload, config.status_field)
    if body_status in config.ready_values and _envelope_matches(payload, job_reference):
        return Outcome.ready
    if config.require_pending_marker and body_status not in config.pending_values:
        return Outcome.transport_error
    return None


def _body_status(payload: Any, field: str) -> Optional[str]:
    if isinstance(payload, dict):
        value = payload.get(field)
        if isinstance(value, str):
            return value
    return None


def _envelope_matches(payload: dict, job_reference: JobReference) -> bool:
    # older endpoints only report ready alongside the echoed envelope id
    return payload.get("envelopeId") == job_reference.envelope_id
