from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

NUMERIC_ATTRIBUTES = {
    "millisecondsBeforePoll": "first_poll_delay",
    "intervalMilliseconds": "interval",
    "maxPolls": "max_attempts",
}


class Outcome(str, Enum):
    ready = "ready"
    rejected_as_unsafe = "rejected_as_unsafe"
    bad_request = "bad_request"
    timeout = "timeout"
    transport_error = "transport_error"


class JobReference(BaseModel):
    """Identifies the server-side upload whose status is polled"""

    model_config = ConfigDict(frozen=True)

    envelope_id: str = Field(min_length=1)
    file_id: Optional[str] = Field(default=None, min_length=1)


class Destinations(BaseModel):
    model_config = ConfigDict(frozen=True)

    ready: str
    unsafe: str
    error: str
    bad_request: Optional[str] = None
    timeout: Optional[str] = None


class StatusPollingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    poll_endpoint: str = Field(min_length=1)
    interval: int = Field(default=1000, gt=0)  # milliseconds
    first_poll_delay: int = Field(default=0, ge=0)  # milliseconds
    max_attempts: Optional[int] = Field(default=None, ge=1)
    request_timeout: float = Field(default=10.0, gt=0)  # seconds
    distinguish_bad_request: bool = True
    retry_on_transport_error: bool = False
    status_field: str = "status"
    ready_values: Tuple[str, ...] = ("AVAILABLE",)
    pending_values: Tuple[str, ...] = ("PENDING", "QUARANTINED", "CLEANED")
    require_pending_marker: bool = False
    destinations: Destinations

    @field_validator("poll_endpoint")
    @classmethod
    def check_placeholders(cls, value: str) -> str:
        try:
            value.format(envelope_id="", file_id="")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"unsupported placeholder in poll endpoint: {e}") from e
        return value

    @classmethod
    def from_data_attributes(
        cls, attributes: Mapping[str, str], **overrides: Any
    ) -> "StatusPollingConfig":
        """Build a config from the string values a hosting page exposes as data attributes"""
        error = attributes.get("handleError") or attributes.get("error")
        values: dict = {
            "poll_endpoint": attributes.get("poll", ""),
            "destinations": {
                "ready": attributes.get("success", ""),
                "unsafe": attributes.get("virus", error),
                "error": attributes.get("error", error),
                "timeout": attributes.get("handleError"),
            },
        }
        # numeric attributes stay strings; pydantic coerces or rejects them
        for key, field in NUMERIC_ATTRIBUTES.items():
            if attributes.get(key):
                values[field] = attributes[key]
        values.update(overrides)
        return cls(**values)


class Attempt(BaseModel):
    number: int
    status_code: Optional[int] = None
    error: Optional[str] = None
    timestamp: float


class PollResult(BaseModel):
    outcome: Outcome
    job_reference: JobReference
    attempts: List[Attempt]
    status_code: Optional[int] = None
    reason: Optional[str] = None
    raw_response: Optional[Any] = None
    elapsed_time: float
