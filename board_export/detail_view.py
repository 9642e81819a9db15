"""
Detail-view driver: open one task's pane, read it, and close it again.

State machine per worklist entry:
  IDLE → ACTIVATING → AWAITING_SETTLE → SETTLED → CLOSING → CLOSED
Any non-terminal state can move to FAILED, which is absorbing.

Whatever happens before it, exactly one close attempt is made per entry.
A pane left open would cover the board and corrupt the next entry.
"""

import logging
import re
import time
from urllib.parse import urljoin

from board_export.errors import StaleHandleError
from board_export.locator import Activation
from board_export.models import TaskRecord
from board_export.waiter import wait_until, DEFAULT_STEP, DEFAULT_TIMEOUT

logger = logging.getLogger("board_export")

OPEN_DELAY = 0.25   # seconds before looking for the pane, and after closing it

_TASK_ID_RE = re.compile(r"/task/(\d+)|/(?:0|1)/\d+/(\d+)")


def resolve_permalink(
    href: str | None,
    fallback_id: str | None,
    origin: str,
    current_url: str,
) -> tuple:
    """
    Return ``(permalink_url, task_id)`` for the open pane.

    Uses the pane's task link when there is one, else synthesizes
    ``/0/0/<id>`` from the known id, else falls back to the current URL.
    """
    if href:
        absolute = urljoin(origin + "/", href)
        match = _TASK_ID_RE.search(absolute)
        task_id = (match.group(1) or match.group(2)) if match else fallback_id
        return absolute, task_id or None
    if fallback_id:
        return urljoin(origin + "/", f"/0/0/{fallback_id}"), fallback_id
    return current_url, None


class DetailViewDriver:
    """Drive one task pane through open/settle/read/close."""

    IDLE            = "idle"
    ACTIVATING      = "activating"
    AWAITING_SETTLE = "awaiting_settle"
    SETTLED         = "settled"
    CLOSING         = "closing"
    CLOSED          = "closed"
    FAILED          = "failed"

    def __init__(
        self,
        locator,
        *,
        open_delay: float = OPEN_DELAY,
        wait_timeout: float = DEFAULT_TIMEOUT,
        poll_step: float = DEFAULT_STEP,
        sleep=time.sleep,
        clock=time.monotonic,
    ):
        self.locator = locator
        self.open_delay = open_delay
        self.wait_timeout = wait_timeout
        self.poll_step = poll_step
        self._sleep = sleep
        self._clock = clock

        self.state = self.IDLE
        self.history: list[str] = [self.IDLE]
        self.close_attempts = 0
        self.error: Exception | None = None

    def _enter(self, state: str) -> None:
        if self.state == self.FAILED:
            return
        self.state = state
        self.history.append(state)

    def run(self, entry, read_feed) -> TaskRecord:
        """
        Open ``entry``'s pane, read it, close it.

        ``read_feed`` is called once the pane has settled and must return the
        task's comment records. Errors propagate after the close attempt.
        """
        try:
            self._enter(self.ACTIVATING)
            if self.locator.activate(entry.activation_handle) is Activation.STALE:
                raise StaleHandleError(entry.item_id)

            self._enter(self.AWAITING_SETTLE)
            self._sleep(self.open_delay)
            surface = wait_until(
                self.locator.find_title_surface,
                self.wait_timeout,
                self.poll_step,
                sleep=self._sleep,
                clock=self._clock,
                what="task pane title",
            )

            self._enter(self.SETTLED)
            title = self.locator.read_title(surface)
            comments = tuple(read_feed())
            permalink, parsed_id = resolve_permalink(
                self.locator.find_permalink_href(),
                entry.item_id,
                self.locator.origin(),
                self.locator.current_url(),
            )
            return TaskRecord(
                item_id=entry.item_id or parsed_id,
                title=title,
                permalink=permalink,
                comments=comments,
            )
        except Exception as e:
            self.error = e
            self.state = self.FAILED
            self.history.append(self.FAILED)
            raise
        finally:
            self._close()

    def _close(self) -> None:
        self._enter(self.CLOSING)
        self.close_attempts += 1
        try:
            control = self.locator.find_close_control()
            if control is not None:
                self.locator.click(control)
            else:
                logger.debug("  No close control found (pane may already be dismissed)")
        except Exception as e:
            logger.debug(f"  Close attempt failed: {e}")
        self._sleep(self.open_delay)
        self._enter(self.CLOSED)
