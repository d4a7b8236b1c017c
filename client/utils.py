import inspect
import math
import time


def now_ms() -> float:
    """Local wall clock in epoch milliseconds, the unit the server stamps rounds in."""
    return time.time() * 1000


async def maybe_await(fn, *args):
    """Call a sync or async callback and wait for it if needed."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def format_number(num) -> str:
    return f"{int(num):,}"


def format_remaining(seconds: float) -> str:
    """Whole seconds left, rounded up, never negative: 4.2 -> '05'."""
    return str(max(0, math.ceil(seconds))).zfill(2)
