import asyncio
import inspect
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, List, Optional, Tuple, Union
from urllib.parse import quote

import aiohttp
from loguru import logger
from upload_status_client.classification import classify_response
from upload_status_client.models import (
    Attempt,
    JobReference,
    Outcome,
    PollResult,
    StatusPollingConfig,
)

REASONS = {
    Outcome.rejected_as_unsafe: "virus-detected",
    Outcome.bad_request: "bad-request",
    Outcome.timeout: "timed-out",
}


class PollingSession:
    """One polling run for a single job reference, driven by its own asyncio task"""

    def __init__(self, client: "UploadStatusClient", job_reference: JobReference):
        self.job_reference = job_reference
        self.attempts: List[Attempt] = []
        self.logger = client.logger
        self._client = client
        self._config = client.config
        self.url = client.status_url(job_reference)
        self._result: Optional[PollResult] = None
        self._cancelled = False
        self._finished = asyncio.Event()
        self._task = asyncio.create_task(self._run())

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def result(self) -> Optional[PollResult]:
        return self._result

    def cancel(self) -> bool:
        """Stop polling; returns False if the outcome was already delivered"""
        if self._result is not None or self._cancelled:
            return False
        self._cancelled = True
        self._task.cancel()
        self._finished.set()
        self.logger.debug(
            f"Polling for {self.job_reference.envelope_id} cancelled "
            f"after {len(self.attempts)} attempt(s)"
        )
        return True

    async def wait(self) -> Optional[PollResult]:
        """Wait for the session to end; None means it was cancelled"""
        await self._finished.wait()
        return self._result

    async def _run(self) -> None:
        start_time = asyncio.get_event_loop().time()
        try:
            async with self._client.http_session() as session:
                result = await self._poll(session, start_time)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.exception(f"Unexpected error while polling: {e}")
            result = self._build_result(
                Outcome.transport_error, None, start_time, reason="unexpected-error"
            )

        try:
            await self._deliver(result)
        finally:
            self._finished.set()

    async def _poll(self, session: aiohttp.ClientSession, start_time: float) -> PollResult:
        delay = self._config.first_poll_delay
        number = 0

        while True:
            if delay:
                await asyncio.sleep(delay / 1000)

            number += 1
            attempt, outcome, payload = await self._attempt(session, number)
            self.attempts.append(attempt)

            if outcome is not None:
                return self._build_result(outcome, payload, start_time)

            if self._config.max_attempts is not None and number >= self._config.max_attempts:
                self.logger.warning(
                    f"Upload {self.job_reference.envelope_id} not ready after {number} attempts"
                )
                return self._build_result(Outcome.timeout, payload, start_time)

            delay = self._config.interval
            self.logger.debug(
                f"Upload still processing, waiting {delay}ms before attempt {number + 1}"
            )

    async def _attempt(
        self, session: aiohttp.ClientSession, number: int
    ) -> Tuple[Attempt, Optional[Outcome], Any]:
        """Issue one status check and classify it"""
        url = self.url
        timestamp = asyncio.get_event_loop().time()
        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout)

        try:
            async with session.get(url, timeout=timeout) as response:
                status_code = response.status
                payload = await self._read_payload(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            error = str(e) or type(e).__name__
            self.logger.error(f"Error checking status at {url}: {error}")
            outcome = None if self._config.retry_on_transport_error else Outcome.transport_error
            return Attempt(number=number, error=error, timestamp=timestamp), outcome, None

        self.logger.debug(f"Attempt {number} for {url} returned HTTP {status_code}")
        outcome = classify_response(status_code, payload, self.job_reference, self._config)
        attempt = Attempt(number=number, status_code=status_code, timestamp=timestamp)
        return attempt, outcome, payload

    @staticmethod
    async def _read_payload(response: aiohttp.ClientResponse) -> Any:
        try:
            return await response.json(content_type=None)
        except ValueError:
            return None

    def _build_result(
        self,
        outcome: Outcome,
        payload: Any,
        start_time: float,
        reason: Optional[str] = None,
    ) -> PollResult:
        last = self.attempts[-1] if self.attempts else None
        status_code = last.status_code if last else None
        if reason is None:
            reason = REASONS.get(outcome)
        if reason is None and outcome == Outcome.transport_error:
            reason = f"unexpected-status-{status_code}" if status_code else "network-error"

        return PollResult(
            outcome=outcome,
            job_reference=self.job_reference,
            attempts=list(self.attempts),
            status_code=status_code,
            reason=reason,
            raw_response=payload,
            elapsed_time=asyncio.get_event_loop().time() - start_time,
        )

    async def _deliver(self, result: PollResult) -> None:
        if self._cancelled or self._result is not None:
            return
        self._result = result
        self.logger.info(
            f"Upload {self.job_reference.envelope_id} finished with {result.outcome.value} "
            f"after {len(result.attempts)} attempt(s)"
        )

        callback = self._client.on_outcome
        if callback is None:
            return
        try:
            returned = callback(result)
            if inspect.isawaitable(returned):
                await returned
        except Exception as e:
            self.logger.exception(f"Outcome handler failed: {e}")


class UploadStatusClient:
    def __init__(
        self,
        config: StatusPollingConfig,
        on_outcome: Optional[Callable[[PollResult], Any]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config
        self.on_outcome = on_outcome
        self.logger = logger
        self._session = session

    def status_url(self, job_reference: JobReference) -> str:
        return self.config.poll_endpoint.format(
            envelope_id=quote(job_reference.envelope_id, safe=""),
            file_id=quote(job_reference.file_id or "", safe=""),
        )

    @asynccontextmanager
    async def http_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Yield the shared session if one was given, otherwise a private one"""
        if self._session is not None:
            yield self._session
            return
        async with aiohttp.ClientSession() as session:
            yield session

    def start(
        self, job_reference: Union[JobReference, str], file_id: Optional[str] = None
    ) -> PollingSession:
        """Start polling on the running event loop and return the session handle"""
        if not isinstance(job_reference, JobReference):
            job_reference = JobReference(envelope_id=job_reference, file_id=file_id)
        if "{file_id}" in self.config.poll_endpoint and job_reference.file_id is None:
            raise ValueError("poll endpoint needs a file id but none was given")
        self.logger.debug(f"Start polling {self.status_url(job_reference)}")
        return PollingSession(self, job_reference)

    async def poll_until_complete(
        self, job_reference: Union[JobReference, str], file_id: Optional[str] = None
    ) -> Optional[PollResult]:
        """Poll until the upload reaches a terminal outcome"""
        polling_session = self.start(job_reference, file_id)
        try:
            return await polling_session.wait()
        except asyncio.CancelledError:
            polling_session.cancel()
            raise
