"""Shared utilities for Dreamgate."""

import asyncio
from collections.abc import Awaitable, Callable
from io import BytesIO
from typing import Any

from PIL import Image

from .exceptions import RetryExhaustedError


async def retry_with_backoff(
    operation: Callable[[int], Awaitable[Any]],
    attempts: int = 3,
    delay: float = 5.0,
    succeeded: Callable[[Any], bool] | None = None,
    give_up_on: tuple[type[BaseException], ...] = (),
    delay_first: bool = False,
    label: str = "operation",
):
    """Run ``operation(attempt)`` until it succeeds or attempts run out.

    An attempt fails when it raises, or when ``succeeded`` is given and
    returns False for its result. Exceptions listed in ``give_up_on``
    propagate immediately. The fixed ``delay`` is slept between attempts,
    and also before the first one when ``delay_first`` is set. Attempts
    clean up after themselves; nothing is torn down here.

    Returns the first successful result; raises RetryExhaustedError
    carrying the last exception otherwise.
    """
    from .browser import debug_log, log

    last_error: BaseException | None = None
    for attempt in range(1, attempts + 1):
        if delay and (delay_first or attempt > 1):
            await asyncio.sleep(delay)
        try:
            result = await operation(attempt)
        except give_up_on:
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            log(f"{label} attempt {attempt}/{attempts} failed: {str(e).split(chr(10))[0]}", "⟳")
        else:
            if succeeded is None or succeeded(result):
                return result
            last_error = None
            debug_log(f"{label} attempt {attempt}/{attempts} not satisfied")

    raise RetryExhaustedError(label, attempts, last_error)


def describe_image(data: bytes) -> str:
    """Return 'WxH FORMAT (NKB)' for image bytes, or just the size if undecodable."""
    size_kb = len(data) // 1024
    try:
        img = Image.open(BytesIO(data))
        return f"{img.width}x{img.height} {img.format or '?'} ({size_kb}KB)"
    except Exception:
        return f"unreadable ({size_kb}KB)"
