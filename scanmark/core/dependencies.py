"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends

from scanmark.core.queue import ImportQueue
from scanmark.core.redis import get_redis_client


def get_queue() -> ImportQueue:
    """Import queue bound to the process-wide Redis client."""
    return ImportQueue(get_redis_client())


QueueDep = Annotated[ImportQueue, Depends(get_queue)]
