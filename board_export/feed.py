"""
Feed exhauster: drive a task's lazily-paged story feed until nothing more loads.

The host gives no end-of-feed signal, so each round expands truncated text,
scrolls to the bottom, waits, and compares. The feed is considered exhausted
after STABLE_ROUNDS consecutive rounds with an unchanged story count while
parked at the bottom. Hitting the round cap is best effort, not a failure.

Known approximation: a host that pages in bursts slower than the pause can be
under-collected.
"""

import logging
import re
import time
from dataclasses import dataclass

logger = logging.getLogger("board_export")

MAX_FEED_PAGES    = 300
FEED_SCROLL_PAUSE = 0.25   # seconds
STABLE_ROUNDS     = 3

_EXPAND_LABEL_RE = re.compile(r"^(show more|see more|read more|expand)$")
_UNRELATED_ARIA_RE = re.compile(r"like|react|menu|more options")


def normalize_label(text: str) -> str:
    return " ".join((text or "").split()).lower()


def is_expand_control(candidate) -> bool:
    """A visible 'show more'-style button inside rich text, not a reaction or menu."""
    if not candidate.visible or not candidate.in_rich_text:
        return False
    if not _EXPAND_LABEL_RE.match(normalize_label(candidate.text)):
        return False
    return not _UNRELATED_ARIA_RE.search((candidate.aria_label or "").lower())


def at_bottom(metrics) -> bool:
    """Within one pixel of the maximum scroll position (sub-pixel safe)."""
    return abs(metrics.height - metrics.client_height - metrics.top) <= 1


@dataclass
class FeedProgress:
    rounds: int = 0
    stories: int = 0
    settled: bool = False
    expanded: int = 0


class FeedExhauster:
    """One-shot exhauster for the currently open task pane's feed."""

    def __init__(
        self,
        locator,
        *,
        max_rounds: int = MAX_FEED_PAGES,
        pause: float = FEED_SCROLL_PAUSE,
        sleep=time.sleep,
    ):
        self.locator = locator
        self.max_rounds = max_rounds
        self.pause = pause
        self._sleep = sleep

    def _expand_truncated(self, feed) -> int:
        clicked = 0
        for candidate in self.locator.expand_candidates(feed):
            if not is_expand_control(candidate):
                continue
            try:
                self.locator.click(candidate.handle)
                clicked += 1
            except Exception as e:
                logger.debug(f"  Expand click failed: {e}")
        return clicked

    def exhaust(self) -> FeedProgress:
        progress = FeedProgress()
        feed = self.locator.open_feed()
        if feed is None:
            logger.debug("  No story feed in this pane")
            progress.settled = True
            return progress

        scroller = self.locator.feed_scroller(feed)
        stable = 0
        last_count = -1

        while progress.rounds < self.max_rounds:
            progress.rounds += 1
            progress.expanded += self._expand_truncated(feed)
            self.locator.scroll_to_bottom(scroller)
            self._sleep(self.pause)

            count = self.locator.count_stories()
            if count == last_count and at_bottom(self.locator.scroll_metrics(scroller)):
                stable += 1
                if stable >= STABLE_ROUNDS:
                    progress.settled = True
                    break
            else:
                stable = 0
            last_count = count

        progress.stories = max(last_count, 0)
        if not progress.settled:
            logger.info(
                f"  Feed still growing after {progress.rounds} rounds "
                f"({progress.stories} stories), using what loaded"
            )
        else:
            logger.debug(f"  Feed settled after {progress.rounds} rounds ({progress.stories} stories)")
        return progress
