"""Shared fixtures: a scripted in-memory board that speaks the ViewLocator contract."""
from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from board_export.locator import Activation, ExpandCandidate, ScrollMetrics, StorySnapshot, ViewLocator
from board_export.models import Card

ORIGIN = "https://app.asana.com"
BOARD_URL = f"{ORIGIN}/0/1200/board"


class FakeClock:
    """Monotonic clock that only advances when something sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@dataclass(eq=False)
class FakeHandle:
    item_id: str
    stale: bool = False


@dataclass
class FakeTask:
    title: str = "Task"
    stories: list = field(default_factory=list)
    story_counts: list = field(default_factory=lambda: [2])
    href: str | None = None
    settles: bool = True
    at_bottom: bool = True
    expand_buttons: list = field(default_factory=list)


def story(text: str, author: str | None = "Ada", created: str | None = "2024-05-01T10:00:00Z",
          story_id: str | None = None, **kwargs) -> StorySnapshot:
    return StorySnapshot(
        story_id=story_id,
        body_html=f"<div class=\"RichText3\"><p>{text}</p></div>" if text is not None else None,
        author=author,
        datetime=created,
        **kwargs,
    )


class FakeLocator(ViewLocator):
    """In-memory board; every interaction is recorded for assertions."""

    CLOSE = "close-control"

    def __init__(self, columns=None, header_names=None, tasks=None, has_close_control=True):
        self.columns = columns or []
        self.header_names = header_names if header_names is not None else []
        self.tasks = tasks or {}
        self.has_close_control = has_close_control
        self.handles = {
            item_id: FakeHandle(item_id)
            for column in self.columns for item_id in column
        }

        self.open_task: FakeTask | None = None
        self.column_scrolls: dict[int, int] = {}
        self.activations: list[str] = []
        self.close_clicks = 0
        self.close_lookups = 0
        self.feed_rounds = 0
        self.expand_clicks: list = []
        self.diagnosed: list[str] = []

    # Board
    def list_columns(self):
        return list(range(len(self.columns)))

    def column_header_names(self):
        return list(self.header_names)

    def scroll_column_to_end(self, column):
        self.column_scrolls[column] = self.column_scrolls.get(column, 0) + 1

    def list_cards(self, column):
        return [Card(item_id=i, handle=self.handles[i]) for i in self.columns[column]]

    # Detail view
    def activate(self, handle):
        if handle is None or handle.stale:
            return Activation.STALE
        self.activations.append(handle.item_id)
        self.open_task = self.tasks.get(handle.item_id, FakeTask(title=f"Task {handle.item_id}"))
        self.feed_rounds = 0
        return Activation.OK

    def find_title_surface(self):
        if self.open_task is not None and self.open_task.settles:
            return "title-surface"
        return None

    def read_title(self, surface):
        return self.open_task.title

    def find_permalink_href(self):
        return self.open_task.href if self.open_task else None

    def find_close_control(self):
        self.close_lookups += 1
        return self.CLOSE if self.has_close_control else None

    def click(self, handle):
        if handle == self.CLOSE:
            self.close_clicks += 1
            self.open_task = None
        else:
            self.expand_clicks.append(handle)

    def origin(self):
        return ORIGIN

    def current_url(self):
        return BOARD_URL

    # Feed
    def open_feed(self):
        return "feed" if self.open_task is not None else None

    def feed_scroller(self, feed):
        return "scroller"

    def expand_candidates(self, feed):
        return list(self.open_task.expand_buttons)

    def scroll_to_bottom(self, scroller):
        self.feed_rounds += 1

    def scroll_metrics(self, scroller):
        if self.open_task.at_bottom:
            return ScrollMetrics(top=900, height=1500, client_height=600)
        return ScrollMetrics(top=100, height=1500, client_height=600)

    def count_stories(self):
        counts = self.open_task.story_counts
        return counts[min(self.feed_rounds, len(counts)) - 1]

    def read_stories(self):
        return list(self.open_task.stories)

    def diagnose(self, label):
        self.diagnosed.append(label)


def expand_button(text="Show more", aria="", in_rich=True, visible=True, name="btn"):
    return ExpandCandidate(text=text, aria_label=aria, in_rich_text=in_rich, visible=visible, handle=name)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return {
        "board_url": BOARD_URL,
        "log_every": 10,
        "open_delay_ms": 250,
        "wait_timeout_ms": 12_000,
        "poll_step_ms": 60,
        "feed_scroll_pause_ms": 250,
        "max_feed_pages": 300,
        "column_scroll_cycles": 8,
        "timeout_multiplier": 1.0,
        "diagnostics_on_failure": True,
    }
