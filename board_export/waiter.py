"""
Polling waiter: observe a condition until it holds or a deadline passes.

Every wait on the host page goes through here so that no single
unresponsive view can hang the run.
"""

import time

DEFAULT_TIMEOUT = 12.0   # seconds
DEFAULT_STEP    = 0.06   # seconds between evaluations


def wait_until(
    producer,
    timeout: float = DEFAULT_TIMEOUT,
    step: float = DEFAULT_STEP,
    *,
    sleep=time.sleep,
    clock=time.monotonic,
    what: str = "element",
):
    """
    Evaluate ``producer()`` every ``step`` seconds and return its first truthy
    result.

    Raises the builtin TimeoutError once ``timeout`` seconds have elapsed
    without a truthy result. The producer is always evaluated at least once.
    """
    started = clock()
    while True:
        value = producer()
        if value:
            return value
        if clock() - started > timeout:
            raise TimeoutError(f"Timed out after {timeout:.1f}s waiting for {what}")
        sleep(step)
