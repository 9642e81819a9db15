"""
Enumerator module: discover the board's columns and the cards in each, then
fold them into one deduplicated worklist.

The board virtualizes off-screen cards, so each column is scrolled to its end
a fixed number of times before it is read. That maximizes the number of
materialized cards but does not guarantee completeness; cards that never
render within the scroll budget are simply not in the worklist.
"""

import logging
import time

from board_export.models import Group, WorklistEntry

logger = logging.getLogger("board_export")

COLUMN_SCROLL_CYCLES = 8
COLUMN_SCROLL_PAUSE  = 0.25   # seconds


def column_name(index: int, header_names: list) -> str:
    """Header text at this column's position, else ``Column {n}``."""
    name = header_names[index].strip() if index < len(header_names) and header_names[index] else ""
    return name or f"Column {index + 1}"


def _materialize(locator, column, cycles: int, pause: float, sleep) -> None:
    for _ in range(cycles):
        locator.scroll_column_to_end(column)
        sleep(pause)


def enumerate_groups(
    locator,
    *,
    scroll_cycles: int = COLUMN_SCROLL_CYCLES,
    pause: float = COLUMN_SCROLL_PAUSE,
    sleep=time.sleep,
) -> list:
    """Return the board's groups in on-screen order, each with its visible cards."""
    columns = locator.list_columns()
    header_names = locator.column_header_names()
    logger.info(f"Found {len(columns)} columns ({len(header_names)} named)")

    groups = []
    for index, column in enumerate(columns):
        name = column_name(index, header_names)
        _materialize(locator, column, scroll_cycles, pause, sleep)
        cards = tuple(locator.list_cards(column))
        logger.info(f"  {name}: {len(cards)} cards")
        groups.append(Group(name=name, cards=cards))
    return groups


def build_worklist(groups: list) -> list:
    """
    Fold every group's cards into one worklist keyed by item id.

    Order is group order, then card order within the group. An item shown in
    several columns keeps only the first column it was seen in.
    """
    entries: dict[str, WorklistEntry] = {}
    for group_index, group in enumerate(groups):
        for card in group.cards:
            if card.item_id in entries:
                logger.debug(
                    f"  Task {card.item_id} also shown in '{group.name}', "
                    f"keeping '{entries[card.item_id].first_group_name}'"
                )
                continue
            entries[card.item_id] = WorklistEntry(
                item_id=card.item_id,
                first_group_name=group.name,
                activation_handle=card.handle,
                group_index=group_index,
            )
    return list(entries.values())
