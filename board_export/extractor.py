"""
Record extractor: turn an exhausted story feed into plain comment records.

Each story's rich body is parsed offline (BeautifulSoup) and flattened to
text: line breaks become newlines, block elements end with a newline, list
items get a bullet, runs of blank lines collapse to one. Stories are
identified by the host's story id when present, else by a digest of
author/created/text, and each identity is kept once per feed read.
"""

import hashlib
import logging
import re

from bs4 import BeautifulSoup

from board_export.models import CommentRecord

logger = logging.getLogger("board_export")

_BLOCK_TAGS = ["p", "div", "li", "ul", "ol", "pre", "blockquote", "h1", "h2", "h3", "h4", "h5", "h6"]
_BULLET = "• "
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def rich_text_to_plain(html: str | None) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for node in soup.find_all(_BLOCK_TAGS):
        node.append("\n")
    for li in soup.find_all("li"):
        li.insert(0, _BULLET)
    text = soup.get_text().replace("\u00a0", " ")
    return _BLANK_RUN_RE.sub("\n\n", text).strip()


def story_key(author: str | None, created: str | None, text: str) -> str:
    """Deterministic identity for a story the host did not give an id to."""
    raw = "|".join([author or "", created or "", text])
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def _clean(value: str | None) -> str | None:
    return (value or "").strip() or None


def extract_records(snapshots) -> list:
    """Normalize story snapshots into ordered, deduplicated CommentRecords."""
    records = []
    seen: set[str] = set()
    for snap in snapshots:
        if snap.in_creation_block or snap.body_html is None:
            continue
        text = rich_text_to_plain(snap.body_html)
        if not text:
            continue

        author = _clean(snap.author)
        created = _clean(snap.datetime) or _clean(snap.timestamp_text)

        key = snap.story_id or story_key(author, created, text)
        if key in seen:
            continue
        seen.add(key)

        records.append(CommentRecord.classify(text, author, created))
    return records


def read_feed_records(locator) -> list:
    """Snapshot the open pane's feed and extract its records."""
    records = extract_records(locator.read_stories())
    logger.debug(f"  Extracted {len(records)} feed records")
    return records
