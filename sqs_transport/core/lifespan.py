from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqs_transport.core.logger import logger
from sqs_transport.services.sqs_server import ServerSqs


@asynccontextmanager
async def lifespan(server: ServerSqs) -> AsyncIterator[ServerSqs]:
    """
    Runs the server for the duration of the block: polling starts on
    enter and a graceful shutdown runs on exit, also when the block raises.
    """
    await server.listen(lambda: logger.info("Lifespan startup: consuming", extra={"queue_url": server.queue_url}))
    try:
        yield server
    finally:
        await server.close()
        logger.info("Lifespan shutdown.")
