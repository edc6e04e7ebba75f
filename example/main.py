import asyncio

from upload_status_client.destinations import OutcomeHandler
from upload_status_client.models import StatusPollingConfig
from upload_status_client.upload_status_client import UploadStatusClient
from upload_status_server import UploadStatusServer


async def navigate(url):
    print(f"Navigating to: {url}")


async def main():
    PORT = 8000
    server = UploadStatusServer(completion_time=5.0, unsafe_rate=0.1)
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    config = StatusPollingConfig.from_data_attributes(
        {
            "poll": f"http://localhost:{PORT}/upload/{{envelope_id}}/status",
            "millisecondsBeforePoll": "1000",
            "maxPolls": "20",
            "success": "/upload/success",
            "virus": "/upload/virus-found",
            "error": "/upload/error",
            "handleError": "/upload/handle-error",
        }
    )

    client = UploadStatusClient(
        config, on_outcome=OutcomeHandler(config.destinations, navigate)
    )

    result = await client.poll_until_complete("envelope-1")
    print(f"Final outcome: {result.outcome.value}")
    print(f"Attempts: {len(result.attempts)}")
    print(f"Total time: {result.elapsed_time:.3f}s")

    await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
