# yingge/utils/workers.py
import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from yingge.config import get_settings

settings = get_settings()

EXECUTOR = ThreadPoolExecutor(max_workers=max(1, settings.PROCESSING_MAX_CONCURRENCY))

class CpuLimiter:
    """Runs blocking image work on the shared executor, at most ``limit`` jobs at a time."""

    def __init__(self, limit: int = settings.PROCESSING_MAX_CONCURRENCY):
        self._semaphore = asyncio.Semaphore(max(1, limit))

    async def run(self, fn, *args, **kwargs):
        async with self._semaphore:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(EXECUTOR, functools.partial(fn, *args, **kwargs))
