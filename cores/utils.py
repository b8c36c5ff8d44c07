import asyncio
from typing import Any, Callable, Optional


async def run_blocking(func: Callable[..., Any], *args, timeout: Optional[float] = None, **kwargs) -> Any:
    """
    Run a blocking call in a worker thread, bounded by a timeout.

    The worker thread is not killed on timeout; the caller just stops waiting.

    Raises:
        asyncio.TimeoutError: If the call takes longer than `timeout` seconds
    """
    call = asyncio.to_thread(func, *args, **kwargs)
    if timeout is None:
        return await call
    return await asyncio.wait_for(call, timeout=timeout)
