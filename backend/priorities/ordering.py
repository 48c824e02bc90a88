"""
Task categorization and display ordering.

Ordering Rules:
---------------
Each task falls into exactly one day-relative category, ranked:

    collected (1) < overdue (2) < today (3) < tomorrow (4) < no-date (5) < future (6)

The category comes from the task's *effective date*: an urgent due date (today,
tomorrow or already past) wins over a planned date; otherwise the planned date
is used. A distant due date without a planned date leaves the task dateless.

Within a category tasks sort by points (highest first), except overdue tasks,
which sort by how long they have been overdue (earliest date first) before
points. Tasks tied on every key keep their input order, so the comparator is
always applied through a stable sort.

Tasks may be plain mappings (API payloads) or objects exposing the same
attribute names (model instances).
"""

from collections import OrderedDict
from datetime import date
from enum import Enum
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Optional

from .dates import DateContext, create_date_context, is_date_urgent, safe_normalize_date
from .points import compute_points, get_priority_level, is_new_default_task, validate_points
from .positions import order_by_position


class TaskCategory(Enum):
    """Day-relative display category."""
    COLLECTED = "collected"
    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    NO_DATE = "no-date"
    FUTURE = "future"


CATEGORY_PRIORITY = {
    TaskCategory.COLLECTED: 1,
    TaskCategory.OVERDUE: 2,
    TaskCategory.TODAY: 3,
    TaskCategory.TOMORROW: 4,
    TaskCategory.NO_DATE: 5,
    TaskCategory.FUTURE: 6,
}


def task_field(task: Any, name: str, default: Any = None) -> Any:
    """Read a field from a mapping or an object."""
    if isinstance(task, dict):
        return task.get(name, default)
    return getattr(task, name, default)


def task_points(task: Any) -> int:
    """Stored points, or points derived from the ratings when absent or invalid."""
    points = task_field(task, 'points')
    if not validate_points(points):
        return compute_points(task_field(task, 'importance'), task_field(task, 'complexity'))
    return points


def get_effective_date(task: Any, context: DateContext) -> Optional[date]:
    """
    Pick the single date that governs a task's category.

    1. An urgent due date (before the day after tomorrow).
    2. Otherwise the planned date.
    3. Otherwise None, even when a distant due date exists.
    """
    due_date = task_field(task, 'due_date')
    if due_date and is_date_urgent(due_date, context):
        return safe_normalize_date(due_date)

    planned_date = task_field(task, 'planned_date')
    if planned_date:
        return safe_normalize_date(planned_date)
    return None


def is_collected_task(task: Any, context: DateContext) -> bool:
    """Untriaged: factory-default ratings and no effective date."""
    if not is_new_default_task(task_field(task, 'importance'), task_field(task, 'complexity')):
        return False
    return get_effective_date(task, context) is None


def get_task_category(task: Any, context: DateContext) -> TaskCategory:
    if is_collected_task(task, context):
        return TaskCategory.COLLECTED

    effective_date = get_effective_date(task, context)
    if effective_date is None:
        return TaskCategory.NO_DATE
    if effective_date < context.today:
        return TaskCategory.OVERDUE
    if effective_date == context.today:
        return TaskCategory.TODAY
    if effective_date == context.tomorrow:
        return TaskCategory.TOMORROW
    return TaskCategory.FUTURE


def get_category_priority(category: TaskCategory) -> int:
    return CATEGORY_PRIORITY[category]


def compare_tasks_priority(a: Any, b: Any, context: DateContext) -> int:
    """
    Three-way comparison of two tasks for display order.

    Negative when ``a`` sorts first, positive when ``b`` does, zero on a tie.
    """
    category_a = get_task_category(a, context)
    category_b = get_task_category(b, context)

    category_comparison = get_category_priority(category_a) - get_category_priority(category_b)
    if category_comparison != 0:
        return category_comparison

    if category_a is TaskCategory.OVERDUE:
        # The more overdue task comes first
        date_comparison = (get_effective_date(a, context) - get_effective_date(b, context)).days
        if date_comparison != 0:
            return date_comparison

    return task_points(b) - task_points(a)


def _with_ordered_subtasks(task: Any) -> Any:
    subtasks = task_field(task, 'subtasks')
    if not isinstance(task, dict) or not subtasks:
        return task
    ordered = [_with_ordered_subtasks(subtask) for subtask in order_by_position(subtasks)]
    return {**task, 'subtasks': ordered}


def order_tasks(tasks: Iterable[Any], context: DateContext) -> List[Any]:
    """
    Return tasks in display order.

    Top-level tasks are ordered by ``compare_tasks_priority``. Nested subtask
    lists of mapping tasks form position-ordered sibling groups and are
    returned sorted by descending position. The input is not mutated.
    """
    key = cmp_to_key(lambda a, b: compare_tasks_priority(a, b, context))
    return [_with_ordered_subtasks(task) for task in sorted(tasks, key=key)]


class TaskPrioritizer:
    """
    Runs ordering passes against one captured date context.

    A prioritizer is cheap to build; create one per pass so every task in the
    pass is classified against the same "today".
    """

    def __init__(self, context: Optional[DateContext] = None):
        self.context = context or create_date_context()

    def category(self, task: Any) -> TaskCategory:
        return get_task_category(task, self.context)

    def compare(self, a: Any, b: Any) -> int:
        return compare_tasks_priority(a, b, self.context)

    def order(self, tasks: Iterable[Any]) -> List[Any]:
        return order_tasks(tasks, self.context)

    def describe(self, task: Any) -> Dict:
        """Serializable annotation of how a task was classified."""
        category = self.category(task)
        effective_date = get_effective_date(task, self.context)
        points = task_points(task)
        return {
            'category': category.value,
            'category_rank': get_category_priority(category),
            'effective_date': effective_date.isoformat() if effective_date else None,
            'is_collected': category is TaskCategory.COLLECTED,
            'points': points,
            'priority_level': get_priority_level(points),
        }

    def group_by_category(self, tasks: Iterable[Any]) -> "OrderedDict[TaskCategory, List[Any]]":
        """
        Ordered tasks bucketed by category, buckets in rank order.

        Empty categories are omitted.
        """
        groups: "OrderedDict[TaskCategory, List[Any]]" = OrderedDict()
        for task in self.order(tasks):
            groups.setdefault(self.category(task), []).append(task)
        return groups
