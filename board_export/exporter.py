"""
Exporter module: the end-to-end board export.

Flow:
  1. Enumerate columns and their cards (scroll-to-materialize first)
  2. Deduplicate cards into one worklist, first column wins
  3. Ask the confirm gate; a "no" ends the run with no output
  4. For each entry, strictly one at a time:
       open pane → exhaust story feed → extract records → close pane
     A failing entry is logged, optionally diagnosed, and skipped
  5. Fold the results back into on-screen column order

The detail pane and story feed are single shared surfaces on the page, so
entries are never processed concurrently.
"""

import json
import logging
import time
import warnings
from datetime import datetime, timezone

from board_export.detail_view import DetailViewDriver
from board_export.enumerator import enumerate_groups, build_worklist
from board_export.errors import EmptyEnumerationWarning
from board_export.extractor import read_feed_records
from board_export.feed import FeedExhauster
from board_export.models import ExportDocument, GroupExport
from board_export.utils import scaled_seconds

logger = logging.getLogger("board_export")


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def process_entry(locator, entry, config: dict, *, sleep=time.sleep, clock=time.monotonic):
    """Run one worklist entry through the detail view and return its TaskRecord."""
    driver = DetailViewDriver(
        locator,
        open_delay=scaled_seconds(config, "open_delay_ms"),
        wait_timeout=scaled_seconds(config, "wait_timeout_ms"),
        poll_step=config["poll_step_ms"] / 1000.0,
        sleep=sleep,
        clock=clock,
    )
    exhauster = FeedExhauster(
        locator,
        max_rounds=config["max_feed_pages"],
        pause=scaled_seconds(config, "feed_scroll_pause_ms"),
        sleep=sleep,
    )

    def _read_feed():
        exhauster.exhaust()
        return read_feed_records(locator)

    return driver.run(entry, _read_feed)


def assemble_document(
    groups: list,
    tasks_by_group: dict,
    *,
    source_url: str,
    exported_at: str,
    attempted: int = 0,
    failed: int = 0,
) -> ExportDocument:
    """Fold per-entry results back into on-screen column order."""
    return ExportDocument(
        exported_at=exported_at,
        source_url=source_url,
        groups=[
            GroupExport(group_name=group.name, tasks=list(tasks_by_group.get(index, [])))
            for index, group in enumerate(groups)
        ],
        tasks_attempted=attempted,
        tasks_failed=failed,
    )


def run_export(
    locator,
    config: dict,
    *,
    confirm,
    sleep=time.sleep,
    clock=time.monotonic,
) -> ExportDocument | None:
    """
    Export the board behind ``locator``.

    ``confirm(total_items, total_groups)`` is asked once before any task is
    opened; returning False cancels the run and None is returned.
    """
    groups = enumerate_groups(
        locator,
        scroll_cycles=config["column_scroll_cycles"],
        pause=scaled_seconds(config, "feed_scroll_pause_ms"),
        sleep=sleep,
    )
    worklist = build_worklist(groups)

    if not worklist:
        message = (
            f"No tasks found ({len(groups)} columns matched); "
            f"the board markup may have changed. Export will be empty."
        )
        logger.warning(message)
        warnings.warn(message, EmptyEnumerationWarning, stacklevel=2)

    if not confirm(len(worklist), len(groups)):
        logger.info("Canceled by user.")
        return None

    total = len(worklist)
    log_every = config["log_every"]
    tasks_by_group: dict[int, list] = {}
    failed = 0

    logger.info("=" * 60)
    logger.info(f"Exporting {total} tasks across {len(groups)} columns")
    logger.info("=" * 60)

    for index, entry in enumerate(worklist, start=1):
        try:
            record = process_entry(locator, entry, config, sleep=sleep, clock=clock)
        except Exception as e:
            failed += 1
            logger.warning(f"Skipping task {entry.item_id}: {e.__class__.__name__}: {e}")
            if config.get("diagnostics_on_failure"):
                locator.diagnose(f"task_{entry.item_id}")
        else:
            tasks_by_group.setdefault(entry.group_index, []).append(record)
            logger.debug(f"  [{index}/{total}] {record.title!r}: {len(record.comments)} comments")

        if index % log_every == 0:
            logger.info(f"Scraped {index}/{total} tasks...")

    document = assemble_document(
        groups,
        tasks_by_group,
        source_url=locator.current_url(),
        exported_at=utc_timestamp(),
        attempted=total,
        failed=failed,
    )
    logger.info(
        f"Export complete: {document.task_total}/{total} tasks "
        f"({failed} skipped) in {len(document.groups)} columns"
    )
    return document


def write_export(document: ExportDocument, path: str) -> str:
    """Serialize the document as pretty-printed JSON and return the path."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document.to_dict(), f, indent=2, ensure_ascii=False)
    logger.info(f"Export written to: {path}")
    return path
