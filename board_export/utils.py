"""
Utility functions: config loading, logging setup, diagnostics and timing helpers.
"""

import os
import re
import logging
import threading
import time as _time
import yaml
from datetime import datetime


PROJECT_ROOT  = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_DIR       = os.path.join(PROJECT_ROOT, "logs")
SCREENSHOT_DIR = os.path.join(LOG_DIR, "screenshots")
HTMLDUMP_DIR   = os.path.join(LOG_DIR, "htmldumps")

DEFAULT_OUTPUT = "asana_board_by_group_with_comments.json"

_CONSOLE_FORMAT = logging.Formatter("[%(asctime)s] %(levelname)-8s %(message)s", datefmt="%H:%M:%S")
_FILE_FORMAT    = logging.Formatter("[%(asctime)s] %(levelname)-8s %(name)s: %(message)s")


def setup_logging(log_dir: str = LOG_DIR) -> logging.Logger:
    """Return the "board_export" logger: INFO to the console, DEBUG to logs/run_<ts>.log."""
    logger = logging.getLogger("board_export")
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, f"run_{datetime.now():%Y%m%d_%H%M%S}.log")

    for handler, level, fmt in (
        (logging.StreamHandler(), logging.INFO, _CONSOLE_FORMAT),
        (logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, _FILE_FORMAT),
    ):
        handler.setLevel(level)
        handler.setFormatter(fmt)
        logger.addHandler(handler)

    logger.info(f"Log file: {log_file}")
    return logger


# ── Remote Log Handler ───────────────────────────────────────────────────

class RemoteLogHandler(logging.Handler):
    """
    Buffer log records and ship them in batches to a LogWebhook.

    Records reaching ``flush_threshold`` trigger an early flush from the
    logging thread, but only while the sink is accepting batches. Once a send
    fails, only the background timer retries; the buffer keeps the newest
    2× threshold entries in the meantime. The export never waits on a sink
    that is down.

    Args:
        sink: Object with a ``send(entries) -> bool`` method (see log_sink.LogWebhook).
        flush_interval: Seconds between automatic flushes.
        flush_threshold: Buffered entries that trigger an early flush.
    """

    def __init__(self, sink, *, flush_interval: int = 5, flush_threshold: int = 50):
        super().__init__(level=logging.INFO)
        self._sink = sink
        self._buffer: list[dict] = []
        self._buffer_lock = threading.Lock()
        self._flush_interval = flush_interval
        self._flush_threshold = flush_threshold
        self._backlog = flush_threshold * 2
        self._sink_down = False

        self._timer = threading.Thread(target=self._flush_loop, daemon=True, name="log-flusher")
        self._timer.start()

    @property
    def sink_down(self) -> bool:
        return self._sink_down

    def emit(self, record: logging.LogRecord) -> None:
        entry = {
            "ts": self.format_time(record),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        with self._buffer_lock:
            self._buffer.append(entry)
            overflow = len(self._buffer) - self._backlog
            if overflow > 0:
                del self._buffer[:overflow]
            should_flush = not self._sink_down and len(self._buffer) >= self._flush_threshold

        if should_flush:
            self.flush()

    def _flush_loop(self) -> None:
        while True:
            _time.sleep(self._flush_interval)
            self.flush()

    def flush(self) -> None:
        """Send buffered entries. Never raises."""
        with self._buffer_lock:
            if not self._buffer:
                return
            batch = self._buffer[:]
            self._buffer.clear()
        delivered = self._sink.send(batch)
        with self._buffer_lock:
            self._sink_down = not delivered
            if not delivered:
                self._buffer = (batch + self._buffer)[-self._backlog:]

    def pending(self) -> int:
        with self._buffer_lock:
            return len(self._buffer)

    @staticmethod
    def format_time(record: logging.LogRecord) -> str:
        return datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")


# ── Config ───────────────────────────────────────────────────────────────

_INT_KEYS = {
    # key: (default, minimum)
    "log_every":            (10, 1),
    "open_delay_ms":        (250, 0),
    "wait_timeout_ms":      (12_000, 100),
    "poll_step_ms":         (60, 1),
    "feed_scroll_pause_ms": (250, 0),
    "max_feed_pages":       (300, 1),
    "column_scroll_cycles": (8, 0),
    "log_flush_interval":   (5, 1),
    "log_flush_threshold":  (50, 1),
}


def load_config(config_path: str = None) -> dict:
    """Load and validate config.yaml, applying defaults for every optional key."""
    if config_path is None:
        config_path = os.path.join(PROJECT_ROOT, "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError(f"config.yaml must be a mapping, got: {type(config).__name__}")

    if not config.get("board_url"):
        raise ValueError("Missing required config key: 'board_url'")

    config.setdefault("output_path", DEFAULT_OUTPUT)
    config.setdefault("headless", False)
    config.setdefault("cdp_url", None)
    config.setdefault("auto_confirm", False)
    config.setdefault("diagnostics_on_failure", True)
    config.setdefault("log_webhook_url", None)

    for key, (default, minimum) in _INT_KEYS.items():
        value = config.setdefault(key, default)
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            raise ValueError(f"{key} must be int >= {minimum}, got: {value!r}")

    multiplier = config.setdefault("timeout_multiplier", 1.0)
    if isinstance(multiplier, bool) or not isinstance(multiplier, (int, float)) or multiplier < 0.1:
        raise ValueError(f"timeout_multiplier must be a number >= 0.1, got: {multiplier!r}")

    return config


def scaled_seconds(config: dict, key: str) -> float:
    """Read a ``*_ms`` config value as seconds, scaled by timeout_multiplier."""
    return config[key] * config.get("timeout_multiplier", 1.0) / 1000.0


def get_session_path() -> str:
    """Return the path to the saved browser storage state."""
    return os.path.join(PROJECT_ROOT, "session.json")


# ── Diagnostics ──────────────────────────────────────────────────────────

def _describe(page) -> str:
    parts = []
    for name, read in (("url", lambda: page.url), ("title", page.title)):
        try:
            parts.append(f"{name}={read()}")
        except Exception:
            parts.append(f"{name}=<unavailable>")
    return "  ".join(parts)


def capture_diagnostics(page, label: str = "error") -> str | None:
    """Save a screenshot of ``page``, or its HTML when the screenshot fails. Returns the path or None."""
    logger = logging.getLogger("board_export")
    logger.debug(f"[diag] {_describe(page)}")
    safe_label = re.sub(r'[^\w\-]', '_', label)[:80]
    stem = f"{datetime.now():%Y%m%d_%H%M%S}_{safe_label}"

    try:
        os.makedirs(SCREENSHOT_DIR, exist_ok=True)
        path = os.path.join(SCREENSHOT_DIR, f"{stem}.png")
        page.screenshot(path=path, full_page=False, timeout=5_000)
        logger.info(f"Screenshot saved: {path}")
        return path
    except Exception as e:
        logger.debug(f"Screenshot failed ({e}), dumping HTML instead")

    try:
        os.makedirs(HTMLDUMP_DIR, exist_ok=True)
        path = os.path.join(HTMLDUMP_DIR, f"{stem}.html")
        html = page.content()
        with open(path, "w", encoding="utf-8") as f:
            f.write(html)
        logger.info(f"HTML dump saved: {path}")
        return path
    except Exception as e:
        logger.warning(f"HTML dump also failed: {e}")
        return None
