"""Tests for the detail-view driver state machine and permalink resolution."""
from __future__ import annotations

import pytest

from board_export.detail_view import DetailViewDriver, resolve_permalink
from board_export.errors import StaleHandleError
from board_export.models import CommentRecord, WorklistEntry

from conftest import FakeLocator, FakeTask, ORIGIN, BOARD_URL


def _entry(locator, item_id="101"):
    return WorklistEntry(item_id=item_id, first_group_name="To do",
                         activation_handle=locator.handles[item_id])


def _driver(locator, clock, **kwargs):
    return DetailViewDriver(locator, open_delay=0.25, wait_timeout=12.0, poll_step=0.06,
                            sleep=clock.sleep, clock=clock, **kwargs)


COMMENTS = (CommentRecord.classify("hello", "Ada", None),)


class TestResolvePermalink:

    def test_task_link(self):
        href, gid = resolve_permalink("/0/1200/987654321", "111", ORIGIN, BOARD_URL)
        assert href == f"{ORIGIN}/0/1200/987654321"
        assert gid == "987654321"

    def test_task_path_link(self):
        href, gid = resolve_permalink("https://app.asana.com/1/77/task/555", None, ORIGIN, BOARD_URL)
        assert href == "https://app.asana.com/1/77/task/555"
        assert gid == "555"

    def test_unparseable_link_keeps_known_id(self):
        href, gid = resolve_permalink("/0/inbox", "111", ORIGIN, BOARD_URL)
        assert href == f"{ORIGIN}/0/inbox"
        assert gid == "111"

    def test_no_link_synthesizes_from_id(self):
        assert resolve_permalink(None, "111", ORIGIN, BOARD_URL) == (f"{ORIGIN}/0/0/111", "111")

    def test_no_link_no_id_uses_current_url(self):
        assert resolve_permalink(None, None, ORIGIN, BOARD_URL) == (BOARD_URL, None)


class TestDetailViewDriver:

    def test_happy_path(self, clock):
        locator = FakeLocator(columns=[["101"]],
                              tasks={"101": FakeTask(title="Write docs", href="/0/1200/101")})
        driver = _driver(locator, clock)

        record = driver.run(_entry(locator), lambda: COMMENTS)

        assert record.item_id == "101"
        assert record.title == "Write docs"
        assert record.permalink == f"{ORIGIN}/0/1200/101"
        assert record.comments == COMMENTS
        assert driver.history == ["idle", "activating", "awaiting_settle", "settled", "closing", "closed"]
        assert driver.state == DetailViewDriver.CLOSED
        assert driver.close_attempts == 1
        assert locator.close_clicks == 1

    def test_settle_delay_precedes_polling(self, clock):
        locator = FakeLocator(columns=[["101"]])
        _driver(locator, clock).run(_entry(locator), lambda: ())
        # open delay, then (title found at once) close pause
        assert clock.sleeps == [0.25, 0.25]

    def test_settle_timeout_still_closes_exactly_once(self, clock):
        locator = FakeLocator(columns=[["101"]], tasks={"101": FakeTask(settles=False)})
        driver = _driver(locator, clock)
        feed_reads = []

        with pytest.raises(TimeoutError):
            driver.run(_entry(locator), lambda: feed_reads.append(1) or ())

        assert driver.state == DetailViewDriver.FAILED
        assert driver.history[-1] == DetailViewDriver.FAILED
        assert driver.close_attempts == 1
        assert locator.close_lookups == 1
        assert locator.close_clicks == 1
        assert feed_reads == []

    def test_stale_handle_fails_and_closes(self, clock):
        locator = FakeLocator(columns=[["101"]])
        locator.handles["101"].stale = True
        driver = _driver(locator, clock)

        with pytest.raises(StaleHandleError) as excinfo:
            driver.run(_entry(locator), lambda: ())

        assert excinfo.value.item_id == "101"
        assert locator.activations == []
        assert driver.history == ["idle", "activating", "failed"]
        assert driver.close_attempts == 1

    def test_feed_error_propagates_after_close(self, clock):
        locator = FakeLocator(columns=[["101"]])
        driver = _driver(locator, clock)

        def broken_feed():
            raise RuntimeError("feed vanished")

        with pytest.raises(RuntimeError, match="feed vanished"):
            driver.run(_entry(locator), broken_feed)
        assert driver.close_attempts == 1
        assert isinstance(driver.error, RuntimeError)

    def test_missing_close_control_is_not_an_error(self, clock):
        locator = FakeLocator(columns=[["101"]], has_close_control=False)
        driver = _driver(locator, clock)

        record = driver.run(_entry(locator), lambda: ())

        assert record.title == "Task 101"
        assert driver.state == DetailViewDriver.CLOSED
        assert driver.close_attempts == 1
        assert locator.close_clicks == 0

    def test_permalink_synthesized_when_pane_has_no_link(self, clock):
        locator = FakeLocator(columns=[["101"]], tasks={"101": FakeTask(href=None)})
        record = _driver(locator, clock).run(_entry(locator), lambda: ())
        assert record.permalink == f"{ORIGIN}/0/0/101"
