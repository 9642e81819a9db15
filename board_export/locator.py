"""
View locator: everything that knows about the host application's markup.

The extraction engine (enumerator, detail_view, feed, extractor) only talks
to the ViewLocator contract below. BoardLocator implements it for the Asana
board view on top of a Playwright Page; supporting a different host means
writing another locator, not touching the engine.

Selectors are taken from live board snapshots. The host markup is not
uniform, so several of them are lists of equivalent alternatives.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from playwright.sync_api import Page, Error as PlaywrightError

from board_export.models import Card
from board_export.utils import capture_diagnostics
from board_export.visibility import is_interactable, is_rendered

logger = logging.getLogger("board_export")

WAIT_STRATEGY = "domcontentloaded"
NAV_TIMEOUT   = 60_000

# ── Board selectors ─────────────────────────────────────────────────────
_COLUMNS          = ".BoardColumn.BoardBody-column"
_HEADER_TITLES    = ".BoardGroupHeader h3.BoardColumnHeaderTitle"
_COLUMN_SCROLLER  = '[data-testid="VerticalScroller"]'
_CARDS            = ".BoardColumnScrollableContainer-cardsList .BoardCard-layout[data-task-id]"
_CARD_TITLE       = ".BoardCard-taskName"

# ── Task pane selectors ─────────────────────────────────────────────────
_TITLE_SURFACES = (
    '[aria-label="Task Name"]',
    '[aria-label="Task name"]',
    '[data-testid*="TaskName"]',
    '[data-testid*="TaskTitle"]',
    'input[placeholder*="Task name"]',
    'h1[contenteditable="true"]',
    'h2[contenteditable="true"]',
)
_PERMALINK      = 'a[href*="/task/"], a[href^="/0/"]'
_CLOSE_CONTROLS = (
    'button[aria-label*="Close"]',
    '[data-testid*="CloseTaskPane"]',
    '[aria-label*="Dismiss"]',
)

# ── Story feed selectors ────────────────────────────────────────────────
_FEED          = ".TaskStoryFeed"
_COMMENTS_TAB  = '[role="tablist"] #Comments[role="tab"]'
_STORIES       = '.TaskStoryFeed .FeedBlockStory[data-testid="FeedBlockStory"]'


# Synthesized click at the element's visual centre. Dispatching the event
# directly avoids hit-testing onto like/complete toggles layered on the card.
_JS_CENTER_CLICK = """
(el) => {
    if (!el.isConnected) return false;
    const r = el.getBoundingClientRect();
    el.dispatchEvent(new MouseEvent("click", {
        bubbles: true,
        cancelable: true,
        view: window,
        clientX: r.left + r.width / 2,
        clientY: r.top + r.height / 2,
    }));
    return true;
}
"""

_JS_READ_TITLE = """
(el) => ("value" in el ? el.value : (el.innerText ?? el.textContent ?? "")) || ""
"""

# Nearest ancestor (or the feed itself) that actually scrolls.
_JS_SCROLLABLE_ANCESTOR = """
(feed) => {
    let n = feed;
    while (n && n !== document.body) {
        const cs = getComputedStyle(n);
        if (/(auto|scroll)/.test(cs.overflowY || "") || n.scrollHeight > n.clientHeight) return n;
        n = n.parentElement;
    }
    return feed;
}
"""

_JS_BUTTON_INFO = """
(b) => {
    const r = b.getBoundingClientRect();
    const cs = getComputedStyle(b);
    return {
        text: (b.innerText || b.textContent || ""),
        aria: b.getAttribute("aria-label") || "",
        inRich: !!b.closest('.TruncatedRichText, [class*="RichText"]'),
        state: {
            width: r.width,
            height: r.height,
            display: cs.display,
            visibility: cs.visibility,
            connected: b.isConnected,
        },
    };
}
"""

_JS_SCROLL_TO_END = "e => { e.scrollTop = e.scrollHeight; }"
_JS_SCROLL_METRICS = "e => ({top: e.scrollTop, height: e.scrollHeight, client: e.clientHeight})"

# One round-trip snapshot of every top-level story in the feed.
_JS_READ_STORIES = """
(selector) => Array.from(document.querySelectorAll(selector)).map(s => {
    const body = s.querySelector(".BlockStoryStructure-body");
    const rich = body
        ? (body.querySelector('.TruncatedRichText, .RichText3, [class*="RichText"]') || body)
        : null;
    const actor = s.querySelector(".BlockStory-actorName");
    const stamp = s.querySelector(".BlockStory-timestamp");
    const time = s.querySelector(".BlockStory-timestamp time");
    return {
        story_id: s.getAttribute("data-story-id"),
        body_html: rich ? rich.outerHTML : null,
        author: actor ? (actor.innerText || actor.textContent || "") : null,
        datetime: time ? time.getAttribute("datetime") : null,
        timestamp_text: stamp ? (stamp.innerText || stamp.textContent || "") : null,
        in_creation_block: !!s.closest(".TaskCreationBlockStory"),
    };
})
"""


class Activation(enum.Enum):
    """Outcome of asking the host to open a card's detail view."""
    OK = "ok"
    STALE = "stale"


@dataclass(frozen=True)
class ExpandCandidate:
    """A button inside the feed that might expand truncated text."""
    text: str
    aria_label: str = ""
    in_rich_text: bool = False
    visible: bool = True
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ScrollMetrics:
    top: float
    height: float
    client_height: float


@dataclass(frozen=True)
class StorySnapshot:
    """Raw, unnormalized view of one feed story as the host renders it."""
    story_id: str | None = None
    body_html: str | None = None
    author: str | None = None
    datetime: str | None = None
    timestamp_text: str | None = None
    in_creation_block: bool = False

    @classmethod
    def from_dict(cls, raw: dict) -> "StorySnapshot":
        return cls(
            story_id=raw.get("story_id") or None,
            body_html=raw.get("body_html"),
            author=raw.get("author"),
            datetime=raw.get("datetime"),
            timestamp_text=raw.get("timestamp_text"),
            in_creation_block=bool(raw.get("in_creation_block")),
        )


class ViewLocator:
    """
    Contract between the extraction engine and a host view.

    Handles returned by one method are opaque to the engine and only ever
    passed back into another method of the same locator.
    """

    # Board
    def list_columns(self) -> list:
        raise NotImplementedError

    def column_header_names(self) -> list:
        raise NotImplementedError

    def scroll_column_to_end(self, column) -> None:
        raise NotImplementedError

    def list_cards(self, column) -> list:
        raise NotImplementedError

    # Detail view
    def activate(self, handle) -> Activation:
        raise NotImplementedError

    def find_title_surface(self):
        raise NotImplementedError

    def read_title(self, surface) -> str:
        raise NotImplementedError

    def find_permalink_href(self) -> str | None:
        raise NotImplementedError

    def find_close_control(self):
        raise NotImplementedError

    def click(self, handle) -> None:
        raise NotImplementedError

    def origin(self) -> str:
        raise NotImplementedError

    def current_url(self) -> str:
        raise NotImplementedError

    # Feed
    def open_feed(self):
        raise NotImplementedError

    def feed_scroller(self, feed):
        raise NotImplementedError

    def expand_candidates(self, feed) -> list:
        raise NotImplementedError

    def scroll_to_bottom(self, scroller) -> None:
        raise NotImplementedError

    def scroll_metrics(self, scroller) -> ScrollMetrics:
        raise NotImplementedError

    def count_stories(self) -> int:
        raise NotImplementedError

    def read_stories(self) -> list:
        raise NotImplementedError

    # Diagnostics
    def diagnose(self, label: str) -> None:
        """Capture whatever helps explain a failure. Optional."""


class BoardLocator(ViewLocator):
    """ViewLocator for the Asana board view, backed by a Playwright Page."""

    def __init__(self, page: Page):
        self.page = page

    # ── Navigation ───────────────────────────────────────────────────────

    def open_board(self, board_url: str | None = None, timeout: int = NAV_TIMEOUT) -> None:
        """Navigate to the board (if a URL is given) and wait for its columns."""
        if board_url:
            logger.info(f"Navigating to: {board_url}")
            self.page.goto(board_url, wait_until=WAIT_STRATEGY, timeout=timeout)
        self.page.wait_for_selector(_COLUMNS, state="visible", timeout=timeout)
        logger.info("Board columns visible.")

    # ── Board ────────────────────────────────────────────────────────────

    def list_columns(self) -> list:
        return [c for c in self.page.query_selector_all(_COLUMNS) if is_interactable(c)]

    def column_header_names(self) -> list:
        return [(h.inner_text() or "").strip() for h in self.page.query_selector_all(_HEADER_TITLES)]

    def _column_scroller(self, column):
        return column.query_selector(f":scope {_COLUMN_SCROLLER}") or column

    def scroll_column_to_end(self, column) -> None:
        self._column_scroller(column).evaluate(_JS_SCROLL_TO_END)

    def list_cards(self, column) -> list:
        scroller = self._column_scroller(column)
        cards = []
        for card in scroller.query_selector_all(f":scope {_CARDS}"):
            if not is_interactable(card):
                continue
            gid = card.get_attribute("data-task-id")
            if not gid:
                continue
            target = card.query_selector(_CARD_TITLE) or card
            cards.append(Card(item_id=gid, handle=target))
        return cards

    # ── Detail view ──────────────────────────────────────────────────────

    def activate(self, handle) -> Activation:
        if handle is None:
            return Activation.STALE
        try:
            clicked = handle.evaluate(_JS_CENTER_CLICK)
        except PlaywrightError as e:
            # "Element is not attached to the DOM" and friends
            logger.debug(f"  Card handle unusable: {e}")
            return Activation.STALE
        return Activation.OK if clicked else Activation.STALE

    def find_title_surface(self):
        return self.page.query_selector(", ".join(_TITLE_SURFACES))

    def read_title(self, surface) -> str:
        return (surface.evaluate(_JS_READ_TITLE) or "").strip()

    def find_permalink_href(self) -> str | None:
        link = self.page.query_selector(_PERMALINK)
        if link is None:
            return None
        return link.get_attribute("href")

    def find_close_control(self):
        return self.page.query_selector(", ".join(_CLOSE_CONTROLS))

    def click(self, handle) -> None:
        handle.evaluate("el => el.click()")

    def origin(self) -> str:
        parts = urlparse(self.page.url)
        return f"{parts.scheme}://{parts.netloc}"

    def current_url(self) -> str:
        return self.page.url

    # ── Feed ─────────────────────────────────────────────────────────────

    def open_feed(self):
        feed = self.page.query_selector(_FEED)
        if feed is None:
            return None
        tab = feed.query_selector(_COMMENTS_TAB)
        if tab is not None and tab.get_attribute("aria-selected") != "true":
            try:
                self.click(tab)
                logger.debug("  Selected Comments tab")
            except PlaywrightError as e:
                logger.debug(f"  Could not select Comments tab: {e}")
        return feed

    def feed_scroller(self, feed):
        element = feed.evaluate_handle(_JS_SCROLLABLE_ANCESTOR).as_element()
        return element or feed

    def expand_candidates(self, feed) -> list:
        candidates = []
        for button in feed.query_selector_all("button"):
            try:
                info = button.evaluate(_JS_BUTTON_INFO)
            except PlaywrightError:
                continue
            candidates.append(ExpandCandidate(
                text=info.get("text") or "",
                aria_label=info.get("aria") or "",
                in_rich_text=bool(info.get("inRich")),
                visible=is_rendered(info.get("state")),
                handle=button,
            ))
        return candidates

    def scroll_to_bottom(self, scroller) -> None:
        scroller.evaluate(_JS_SCROLL_TO_END)

    def scroll_metrics(self, scroller) -> ScrollMetrics:
        m = scroller.evaluate(_JS_SCROLL_METRICS)
        return ScrollMetrics(top=m["top"], height=m["height"], client_height=m["client"])

    def count_stories(self) -> int:
        return self.page.locator(_STORIES).count()

    def read_stories(self) -> list:
        return [StorySnapshot.from_dict(raw) for raw in self.page.evaluate(_JS_READ_STORIES, _STORIES)]

    # ── Diagnostics ──────────────────────────────────────────────────────

    def diagnose(self, label: str) -> None:
        capture_diagnostics(self.page, label)
