"""
Drag-and-drop reordering.

The drag state is an explicit value: every pointer event produces a new
DragState and the drop is computed from the latest one. Nothing here holds
on to an earlier state.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

ABOVE = "above"
BELOW = "below"
POSITIONS = (ABOVE, BELOW)


@dataclass(frozen=True)
class DragState:
    """Current drag: which row is moving and where it would land."""
    source_index: Optional[int] = None
    target_index: Optional[int] = None
    position: str = ABOVE

    @property
    def active(self) -> bool:
        return self.source_index is not None

    def drop_index(self) -> Optional[int]:
        if self.source_index is None or self.target_index is None:
            return None
        return drop_index(self.source_index, self.target_index, self.position)


def drag_start(source_index: int) -> DragState:
    return DragState(source_index=source_index)


def drag_over(state: DragState, target_index: int, position: str) -> DragState:
    """Return the state after hovering target_index in the given half."""
    if position not in POSITIONS:
        raise ValueError(f"position must be one of {POSITIONS}, got {position!r}")
    return replace(state, target_index=target_index, position=position)


def drag_end() -> DragState:
    return DragState()


def drop_index(source_index: int, target_index: int, position: str) -> Optional[int]:
    """
    Final index of the dragged item once it has been removed and reinserted.

    Args:
        source_index: Index of the dragged item
        target_index: Index of the row being hovered
        position: "above" or "below" the hovered row

    Returns:
        Destination index, or None when the drop leaves the list unchanged

    Examples:
        >>> drop_index(0, 2, "below")
        2
        >>> drop_index(3, 1, "above")
        1
        >>> drop_index(1, 1, "below") is None
        True
    """
    if position not in POSITIONS:
        raise ValueError(f"position must be one of {POSITIONS}, got {position!r}")

    slot = target_index if position == ABOVE else target_index + 1
    if source_index < slot:
        slot -= 1

    if slot == source_index:
        return None
    return slot


def move_item(items: Sequence[T], source_index: int, destination_index: int) -> List[T]:
    """Return a new list with items[source_index] moved to destination_index."""
    length = len(items)
    if not 0 <= source_index < length or not 0 <= destination_index < length:
        raise ValueError(
            f"Invalid indices for reorder: {source_index} -> {destination_index} (length {length})"
        )

    result = list(items)
    moved = result.pop(source_index)
    result.insert(destination_index, moved)
    return result


def reorder_with_display_order(
    rows: Sequence[Mapping[str, Any]],
    source_index: int,
    destination_index: int,
    field: str = "display_order",
) -> List[Dict[str, Any]]:
    """
    Move a row and renumber `field` from zero.

    Indices refer to the rows sorted by their current `field` value
    (missing values sort as 0). Categories keep theirs in `order`.
    """
    ordered = sorted(rows, key=lambda row: row.get(field) or 0)
    moved = move_item(ordered, source_index, destination_index)

    logger.debug(f"Reordering rows {source_index} -> {destination_index}")
    return [{**row, field: index} for index, row in enumerate(moved)]
