import asyncio
import random
from datetime import datetime
from typing import List, Optional, Tuple, Union

from aiohttp import web
from loguru import logger


class UploadStatusServer:
    def __init__(
        self,
        completion_time: float = 10.0,
        unsafe_rate: float = 0.0,
        script: Optional[List[Union[int, Tuple[int, dict]]]] = None,
        response_delay: float = 0.0,
    ):
        self.start_time = None
        self.completion_time = completion_time
        self.unsafe_rate = unsafe_rate
        self.script = list(script or [])
        self.response_delay = response_delay
        self.requests: List[Tuple[float, str]] = []
        self.app = web.Application()
        self.app.router.add_get("/upload/{envelope_id}/status", self.handle_status)
        self.app.router.add_get(
            "/upload/{envelope_id}/files/{file_id}/status", self.handle_status
        )
        self.logger = logger

    async def handle_status(self, request):
        envelope_id = request.match_info["envelope_id"]
        self.requests.append((asyncio.get_event_loop().time(), envelope_id))
        if self.start_time is None:
            self.start_time = datetime.now()

        if self.response_delay:
            await asyncio.sleep(self.response_delay)

        if self.script:
            return self._scripted_response(self.script.pop(0), envelope_id)

        if random.random() < self.unsafe_rate:
            self.logger.info("Returning safety check failure")
            return web.json_response({"envelopeId": envelope_id}, status=409)

        elapsed = (datetime.now() - self.start_time).total_seconds()

        if elapsed >= self.completion_time:
            self.logger.info("Returning ready status")
            return web.json_response({"envelopeId": envelope_id}, status=202)
        else:
            self.logger.info(f"Returning pending status (elapsed: {elapsed:.1f}s)")
            return web.json_response({"envelopeId": envelope_id, "status": "PENDING"})

    def _scripted_response(self, entry, envelope_id: str) -> web.Response:
        # entries are a status code or a (status code, body) pair
        if isinstance(entry, tuple):
            status, body = entry
            self.logger.info(f"Returning scripted status {status} with {body}")
            return web.json_response(body, status=status)
        status = entry
        self.logger.info(f"Returning scripted status {status}")
        if status == 200:
            return web.json_response({"envelopeId": envelope_id, "status": "PENDING"})
        return web.json_response({"envelopeId": envelope_id}, status=status)

    async def start(self, port: int = 8080):
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, "localhost", port)
        await site.start()
        self.runner = runner
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self):
        await self.runner.cleanup()
