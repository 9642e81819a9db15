"""
Error kinds raised or reported while exporting a board.

Timeouts use the builtin ``TimeoutError`` (see waiter.wait_until); only the
conditions with no builtin equivalent live here.
"""


class StaleHandleError(RuntimeError):
    """The card captured during enumeration is no longer attached to the page."""

    def __init__(self, item_id: str):
        super().__init__(f"Activation handle for task {item_id} is stale (detached)")
        self.item_id = item_id


class EmptyEnumerationWarning(UserWarning):
    """No columns or cards were discovered on the board."""
