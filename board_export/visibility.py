"""
Visibility filter: tell interactable elements apart from virtualization
placeholders, hidden nodes and detached nodes.
"""

import logging

logger = logging.getLogger("board_export")

# Reads the rendered box and computed style in one round-trip.
_JS_RENDER_STATE = """
(el) => {
    const r = el.getBoundingClientRect();
    const cs = getComputedStyle(el);
    return {
        width: r.width,
        height: r.height,
        display: cs.display,
        visibility: cs.visibility,
        connected: el.isConnected,
    };
}
"""


def is_rendered(state: dict | None) -> bool:
    """True only for a non-zero box that is not hidden by display/visibility."""
    if not state:
        return False
    if state.get("connected") is False:
        return False
    return (
        (state.get("width") or 0) > 0
        and (state.get("height") or 0) > 0
        and state.get("display") != "none"
        and state.get("visibility") != "hidden"
    )


def is_interactable(handle) -> bool:
    """Evaluate the render state of a live element handle.

    A handle whose node has been detached raises inside evaluate(); that is
    reported as not visible rather than propagated.
    """
    if handle is None:
        return False
    try:
        state = handle.evaluate(_JS_RENDER_STATE)
    except Exception as e:
        logger.debug(f"  Visibility probe failed (treated as hidden): {e}")
        return False
    return is_rendered(state)
