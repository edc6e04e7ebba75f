import pytest
from pydantic import ValidationError
from upload_status_client.classification import classify_response
from upload_status_client.destinations import destination_for
from upload_status_client.models import (
    Destinations,
    JobReference,
    Outcome,
    PollResult,
    StatusPollingConfig,
)
from upload_status_client.upload_checks import check_upload, rejection_url
from upload_status_client.upload_status_client import UploadStatusClient

DESTINATIONS = Destinations(
    ready="/success", unsafe="/virus", error="/error", timeout="/handle-error"
)
JOB = JobReference(envelope_id="abc123")


@pytest.fixture
def config() -> StatusPollingConfig:
    return StatusPollingConfig(
        poll_endpoint="http://localhost/upload/{envelope_id}/status",
        destinations=DESTINATIONS,
    )


def make_result(outcome: Outcome, status_code=None, reason=None) -> PollResult:
    return PollResult(
        outcome=outcome,
        job_reference=JOB,
        attempts=[],
        status_code=status_code,
        reason=reason,
        elapsed_time=0.0,
    )


@pytest.mark.parametrize(
    "status_code, payload, expected",
    [
        (202, None, Outcome.ready),
        (409, {"envelopeId": "abc123"}, Outcome.rejected_as_unsafe),
        (400, None, Outcome.bad_request),
        (500, None, Outcome.transport_error),
        (404, None, Outcome.transport_error),
        (200, None, None),
        (200, {"status": "PENDING"}, None),
        (200, {"status": "AVAILABLE", "envelopeId": "abc123"}, Outcome.ready),
        (200, {"status": "AVAILABLE", "envelopeId": "xyz"}, None),
        (200, {"status": "AVAILABLE"}, None),
    ],
)
def test_classify_response(config, status_code, payload, expected):
    assert classify_response(status_code, payload, JOB, config) == expected


def test_classify_requires_pending_marker(config):
    config = config.model_copy(update={"require_pending_marker": True})

    assert classify_response(200, {"status": "PENDING"}, JOB, config) is None
    assert classify_response(200, "not json", JOB, config) == Outcome.transport_error


def test_invalid_config():
    with pytest.raises(ValidationError):
        StatusPollingConfig(poll_endpoint="/poll", interval=0, destinations=DESTINATIONS)
    with pytest.raises(ValidationError):
        StatusPollingConfig(poll_endpoint="/poll", max_attempts=0, destinations=DESTINATIONS)
    with pytest.raises(ValidationError):
        StatusPollingConfig(poll_endpoint="/poll/{job}", destinations=DESTINATIONS)


def test_empty_job_reference():
    with pytest.raises(ValidationError):
        JobReference(envelope_id="")


def test_file_id_required_by_endpoint():
    """A file id placeholder with no file id is rejected before polling starts."""
    client = UploadStatusClient(
        StatusPollingConfig(
            poll_endpoint="http://localhost/upload/{envelope_id}/files/{file_id}/status",
            destinations=DESTINATIONS,
        )
    )

    with pytest.raises(ValueError):
        client.start("abc123")


def test_config_is_frozen(config):
    with pytest.raises(ValidationError):
        config.max_attempts = 6
    with pytest.raises(ValidationError):
        config.destinations.ready = "/elsewhere"

    assert config.max_attempts is None


def test_from_data_attributes():
    """Page data attributes are plain strings and become a validated config."""
    config = StatusPollingConfig.from_data_attributes(
        {
            "poll": "/upload/abc123/status",
            "millisecondsBeforePoll": "3000",
            "maxPolls": "10",
            "success": "/success",
            "handleError": "/handle-error",
            "error": "/error",
        }
    )

    assert config.first_poll_delay == 3000
    assert config.max_attempts == 10
    assert config.interval == 1000
    assert config.destinations.unsafe == "/handle-error"
    assert config.destinations.timeout == "/handle-error"
    assert config.destinations.error == "/error"


def test_from_data_attributes_rejects_non_numeric():
    with pytest.raises(ValidationError):
        StatusPollingConfig.from_data_attributes(
            {"poll": "/poll", "maxPolls": "ten", "success": "/success", "error": "/error"}
        )


def test_destinations():
    assert destination_for(make_result(Outcome.ready), DESTINATIONS) == "/success"
    assert destination_for(make_result(Outcome.rejected_as_unsafe), DESTINATIONS) == "/virus"
    assert (
        destination_for(make_result(Outcome.timeout, reason="timed-out"), DESTINATIONS)
        == "/handle-error?errorCode=408&reason=timed-out"
    )
    assert (
        destination_for(make_result(Outcome.bad_request, 400, "bad-request"), DESTINATIONS)
        == "/error?errorCode=400&reason=bad-request"
    )
    assert (
        destination_for(make_result(Outcome.transport_error, None, "network-error"), DESTINATIONS)
        == "/error?errorCode=500&reason=network-error"
    )


def test_upload_checks():
    megabyte = 1024 * 1024

    assert check_upload("report.xml", "text/xml", 10 * megabyte) is None
    assert check_upload(None, None, 0).reason == "no-file"
    assert check_upload("report.pdf", "application/pdf", megabyte).error_code == 415

    too_large = check_upload("report.xml", "text/xml", 51 * megabyte)
    assert too_large.error_code == 413
    assert rejection_url("/handle-error", too_large) == "/handle-error?errorCode=413&reason=too-large"
    assert rejection_url("/handle-error", check_upload("", None, 0)) is None
