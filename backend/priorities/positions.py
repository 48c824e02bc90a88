"""
Sibling ordering keys for drag-and-drop reordering.

Every task carries a numeric ``position``; siblings (tasks sharing a parent, or
all root tasks) render by descending position. Positions start out spaced
(10000, 9900, 9800, ...) so that a single move can usually be resolved by
writing one new value:

- to the front: 100 above the current first sibling
- to the back: 100 below the current last sibling, never below 1
- between two siblings: the integer midpoint of their positions

When the floored midpoint of two neighbours no longer lands strictly between
them (integer neighbours 1 apart, or fractional ones such as 2.2 and 1.1) the
gap is exhausted. The allocator then places the item 50 above the upper
neighbour, which may not land between the two. Nothing is renumbered
implicitly; ``rebalance_positions`` is available for callers that want to
restore spacing.

Position 0 marks a task whose position was never initialized. Missing and
non-numeric positions read as 0.
"""

import logging
import math
from collections import OrderedDict
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidMove


logger = logging.getLogger(__name__)

POSITION_SEED = 10000
POSITION_STEP = 100
GAP_FALLBACK_OFFSET = 50
MIN_POSITION = 1
UNINITIALIZED_POSITION = 0


def sibling_position(sibling: Any) -> float:
    if isinstance(sibling, dict):
        position = sibling.get('position')
    else:
        position = getattr(sibling, 'position', None)
    if isinstance(position, bool) or not isinstance(position, (int, float)):
        return UNINITIALIZED_POSITION
    if math.isnan(position):
        return UNINITIALIZED_POSITION
    return position


def order_by_position(siblings: Iterable[Any]) -> List[Any]:
    """Siblings sorted by descending position; ties keep their input order."""
    return sorted(siblings, key=sibling_position, reverse=True)


def is_gap_exhausted(above: float, below: float) -> bool:
    """True when the floored midpoint of two neighbours cannot fall strictly between them."""
    return above - below <= 1 or math.floor((above + below) / 2) <= below


def _check_index(name: str, index: Any, count: int) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < count:
        raise InvalidMove(
            f"{name} must be an integer between 0 and {count - 1}, got {index!r}",
            field=name
        )


def move_neighbours(
    siblings: Sequence[Any],
    old_index: int,
    new_index: int
) -> Tuple[Optional[float], Optional[float]]:
    """
    Positions of the siblings directly above and below a moved item.

    The dragged item is taken out of the list first; ``None`` stands for the
    edge of the list.
    """
    rest = [sibling for index, sibling in enumerate(siblings) if index != old_index]
    above = sibling_position(rest[new_index - 1]) if new_index > 0 else None
    below = sibling_position(rest[new_index]) if new_index < len(rest) else None
    return above, below


def calculate_reordered_position(
    siblings: Sequence[Any],
    old_index: int,
    new_index: int
) -> float:
    """
    Compute the new position for a sibling dragged from one index to another.

    Args:
        siblings: The sibling group in display order (descending position),
            including the dragged item at ``old_index``.
        old_index: Where the dragged item currently is.
        new_index: Where it should end up.

    Returns:
        The single position value to store for the dragged item.

    Raises:
        InvalidMove: if either index does not address the sibling list.
    """
    count = len(siblings)
    _check_index('old_index', old_index, count)
    _check_index('new_index', new_index, count)

    if old_index == new_index:
        return sibling_position(siblings[old_index])

    above, below = move_neighbours(siblings, old_index, new_index)

    if above is None:
        # Moving to the front
        return below + POSITION_STEP if below > 0 else POSITION_SEED

    if below is None:
        # Moving to the back
        return max(MIN_POSITION, above - POSITION_STEP) if above > 0 else MIN_POSITION

    if not is_gap_exhausted(above, below):
        return math.floor((above + below) / 2)

    logger.warning(
        "No room between positions %s and %s; placing moved sibling at %s",
        above, below, above + GAP_FALLBACK_OFFSET
    )
    return above + GAP_FALLBACK_OFFSET


def group_by_parent(tasks: Iterable[Any]) -> "OrderedDict[Any, List[Any]]":
    """Split tasks into sibling groups keyed by parent id (None for roots)."""
    groups: "OrderedDict[Any, List[Any]]" = OrderedDict()
    for task in tasks:
        if isinstance(task, dict):
            parent_id = task.get('parent_id')
        else:
            parent_id = getattr(task, 'parent_id', None)
        groups.setdefault(parent_id, []).append(task)
    return groups


def seed_positions(siblings: Iterable[Any]) -> List[Tuple[Any, int]]:
    """
    Assign initial positions to the uninitialized members of a sibling group.

    Walks the group in the given order handing out 10000, 9900, 9800, ...;
    siblings that already have a position keep it but still consume a slot.

    Returns:
        ``(sibling, position)`` pairs for the siblings that need a value.
    """
    assignments = []
    position = POSITION_SEED
    for sibling in siblings:
        if sibling_position(sibling) == UNINITIALIZED_POSITION:
            assignments.append((sibling, position))
        position -= POSITION_STEP
    return assignments


def rebalance_positions(siblings: Sequence[Any]) -> List[Tuple[Any, int]]:
    """
    Renumber a whole sibling group with fresh, evenly spaced positions.

    The given order is preserved and every new position is at least
    ``POSITION_STEP``. This is an explicit maintenance action; the allocator
    never calls it.
    """
    top = max(POSITION_SEED, POSITION_STEP * len(siblings))
    return [
        (sibling, top - index * POSITION_STEP)
        for index, sibling in enumerate(siblings)
    ]
