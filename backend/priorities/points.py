"""
Points calculation for tasks.

A task's score is derived from two user-provided ratings:

    points = round(10 * importance / complexity), clamped to [0, 500]

with importance in [0, 50] and complexity in [1, 9]. The score is never stored
independently: every create or update recomputes it from the two inputs.

Two layers guard the inputs:
- ``validate_importance`` / ``validate_complexity`` are strict predicates used
  at the request boundary to reject malformed input.
- ``compute_points`` clamps silently. It is an internal derivation and never
  raises.
"""

import math
from typing import Any, Dict, List

from .errors import ErrorCode, OutOfRangeInput, ValidationError


MIN_IMPORTANCE = 0
MAX_IMPORTANCE = 50
MIN_COMPLEXITY = 1
MAX_COMPLEXITY = 9
MIN_POINTS = 0
MAX_POINTS = 500

# Untriaged ("collected") tasks carry exactly this pairing.
COLLECTED_IMPORTANCE = 0
COLLECTED_COMPLEXITY = 3

# Lower bound of each named priority level, highest first.
PRIORITY_LEVELS = (
    ('critical', 400),
    ('high', 300),
    ('medium', 200),
    ('low', 100),
    ('minimal', 0),
)


def _clamp(value: Any, low: float, high: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low
    if math.isnan(number):
        return low
    return max(low, min(high, number))


def _is_integral(value: Any) -> bool:
    # bool is an int subclass but never a valid rating
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value) and value.is_integer()
    return False


def compute_points(importance: Any, complexity: Any) -> int:
    """
    Compute the priority score for an importance/complexity pair.

    Out-of-range or non-numeric inputs are clamped into their valid interval
    rather than rejected. Halves round up.

    >>> compute_points(50, 1)
    500
    >>> compute_points(25, 5)
    50
    >>> compute_points(30, 3)
    100
    >>> compute_points(99, 0)
    500
    """
    valid_importance = _clamp(importance, MIN_IMPORTANCE, MAX_IMPORTANCE)
    valid_complexity = _clamp(complexity, MIN_COMPLEXITY, MAX_COMPLEXITY)

    raw = 10 * valid_importance / valid_complexity
    points = math.floor(raw + 0.5)

    return int(max(MIN_POINTS, min(MAX_POINTS, points)))


def validate_importance(importance: Any) -> bool:
    """True only for integers in [0, 50]."""
    return _is_integral(importance) and MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE


def validate_complexity(complexity: Any) -> bool:
    """True only for integers in [1, 9]."""
    return _is_integral(complexity) and MIN_COMPLEXITY <= complexity <= MAX_COMPLEXITY


def validate_points(points: Any) -> bool:
    """True only for integers in [0, 500]."""
    return _is_integral(points) and MIN_POINTS <= points <= MAX_POINTS


def ensure_valid_scoring(importance: Any, complexity: Any) -> None:
    """
    Reject an importance/complexity pair that fails strict validation.

    Raises:
        OutOfRangeInput: naming the first offending field.
    """
    if not validate_importance(importance):
        raise OutOfRangeInput(
            f"Importance must be an integer between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}",
            field='importance'
        )
    if not validate_complexity(complexity):
        raise OutOfRangeInput(
            f"Complexity must be an integer between {MIN_COMPLEXITY} and {MAX_COMPLEXITY}",
            field='complexity'
        )


def get_default_task_values() -> Dict[str, int]:
    """Defaults for an explicitly created task: fully prioritized."""
    return {
        'importance': MAX_IMPORTANCE,
        'complexity': MIN_COMPLEXITY,
        'points': MAX_POINTS,
    }


def get_new_default_task_values() -> Dict[str, int]:
    """Defaults for a collected (inbox) task that has not been scored yet."""
    return {
        'importance': COLLECTED_IMPORTANCE,
        'complexity': COLLECTED_COMPLEXITY,
        'points': 0,
    }


def is_new_default_task(importance: Any, complexity: Any) -> bool:
    return importance == COLLECTED_IMPORTANCE and complexity == COLLECTED_COMPLEXITY


def get_priority_level(points: Any) -> str:
    """
    Map a score onto its named priority level.

    >>> get_priority_level(500)
    'critical'
    >>> get_priority_level(150)
    'low'
    """
    value = _clamp(points, MIN_POINTS, MAX_POINTS)
    for label, lower_bound in PRIORITY_LEVELS:
        if value >= lower_bound:
            return label
    return PRIORITY_LEVELS[-1][0]


def validate_tasks(tasks: List[Dict]) -> List[ValidationError]:
    """
    Validate the ratings of a batch of tasks and return any errors found.

    Dates are not checked here: a malformed date degrades the task to
    "no date" during ordering instead of rejecting the batch.
    """
    errors = []

    if not tasks:
        errors.append(ValidationError(
            code=ErrorCode.ERR_EMPTY_TASKS,
            message="At least one task is required"
        ))
        return errors

    for i, task in enumerate(tasks):
        if not isinstance(task, dict):
            errors.append(ValidationError(
                code=ErrorCode.ERR_MISSING_FIELD,
                message="Each task must be an object",
                task_id=i + 1
            ))
            continue

        task_id = task.get('id', i + 1)

        importance = task.get('importance')
        if importance is None:
            errors.append(ValidationError(
                code=ErrorCode.ERR_MISSING_FIELD,
                message="Importance is required",
                field='importance',
                task_id=task_id
            ))
        elif not validate_importance(importance):
            errors.append(ValidationError(
                code=ErrorCode.ERR_OUT_OF_RANGE,
                message=f"Importance must be an integer between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}",
                field='importance',
                task_id=task_id
            ))

        complexity = task.get('complexity')
        if complexity is None:
            errors.append(ValidationError(
                code=ErrorCode.ERR_MISSING_FIELD,
                message="Complexity is required",
                field='complexity',
                task_id=task_id
            ))
        elif not validate_complexity(complexity):
            errors.append(ValidationError(
                code=ErrorCode.ERR_OUT_OF_RANGE,
                message=f"Complexity must be an integer between {MIN_COMPLEXITY} and {MAX_COMPLEXITY}",
                field='complexity',
                task_id=task_id
            ))

    return errors
