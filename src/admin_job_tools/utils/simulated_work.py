import asyncio
from typing import Callable


async def simulate_work(
    seconds: float,
    steps: int,
    progress_callback: Callable[[int], None] | None = None,
    *,
    start: int = 0,
    end: int = 100,
) -> None:
    """Sleep ``seconds`` in ``steps`` slices, reporting progress from start to end."""
    steps = max(1, steps)
    delay = max(0.0, seconds) / steps
    for step in range(1, steps + 1):
        if delay:
            await asyncio.sleep(delay)
        if progress_callback:
            progress_callback(start + (end - start) * step // steps)
