import asyncio
import threading
from typing import Any, Awaitable, Callable, Dict, TypeVar

T = TypeVar('T')


class SemaphoreExecutor:
    """
    Awaits coroutine functions under a semaphore so at most `max_concurrent`
    run at once. The semaphore binds to the first loop that uses it.

    Example:
        >>> bound = SemaphoreExecutor(max_concurrent=8)
        >>> texts = await asyncio.gather(
        ...     *[bound.run(client.complete, p, 'gpt-4o-mini', 0.0) for p in prompts]
        ... )
    """

    def __init__(self, max_concurrent: int = 5):
        if max_concurrent <= 0:
            raise ValueError('max_concurrent must be a positive integer')
        self.max_concurrent = max_concurrent
        self.semaphore = asyncio.Semaphore(max_concurrent)

    async def run(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        async with self.semaphore:
            return await func(*args, **kwargs)


def run_async_function(
    async_func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
) -> T:
    """
    Run `async_func` to completion from synchronous code.

    Without a running loop this is `asyncio.run`. Inside one (notebooks,
    async frameworks) the coroutine gets a fresh loop on a worker thread and
    the caller blocks until it finishes; its exception is re-raised here.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(async_func(*args, **kwargs))

    outcome: Dict[str, Any] = {}

    def worker() -> None:
        try:
            outcome['result'] = asyncio.run(async_func(*args, **kwargs))
        except BaseException as e:
            outcome['error'] = e

    thread = threading.Thread(target=worker, name='shotcraft-sync-bridge')
    thread.start()
    thread.join()
    if 'error' in outcome:
        raise outcome['error']
    return outcome['result']
