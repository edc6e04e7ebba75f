import inspect
from typing import Any, Callable, Optional
from urllib.parse import urlencode

from loguru import logger
from upload_status_client.models import Destinations, Outcome, PollResult

TIMEOUT_ERROR_CODE = 408
DEFAULT_ERROR_CODE = 500


def with_query(url: str, **params: Any) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


def destination_for(result: PollResult, destinations: Destinations) -> str:
    """Map a terminal poll result to the page the user should be sent to"""
    if result.outcome == Outcome.ready:
        return destinations.ready
    if result.outcome == Outcome.rejected_as_unsafe:
        return destinations.unsafe
    if result.outcome == Outcome.bad_request and destinations.bad_request:
        return destinations.bad_request
    if result.outcome == Outcome.timeout:
        target = destinations.timeout or destinations.error
        return with_query(target, errorCode=TIMEOUT_ERROR_CODE, reason=result.reason)

    error_code = result.status_code or DEFAULT_ERROR_CODE
    return with_query(destinations.error, errorCode=error_code, reason=result.reason)


class OutcomeHandler:
    """Outcome callback that performs the navigation side effect for a poll result"""

    def __init__(self, destinations: Destinations, navigate: Callable[[str], Any]):
        self.destinations = destinations
        self.navigate = navigate
        self.logger = logger
        self.last_destination: Optional[str] = None

    async def __call__(self, result: PollResult) -> None:
        url = destination_for(result, self.destinations)
        self.last_destination = url
        self.logger.info(f"Navigating to {url} ({result.outcome.value})")
        returned = self.navigate(url)
        if inspect.isawaitable(returned):
            await returned
