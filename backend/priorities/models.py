"""
Task Model for the task priority engine.

This module defines the persisted shape of a task: the ratings its score is
derived from, the dates that drive its category, and the sibling position used
for manual drag-and-drop ordering.
"""

from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator

from .points import (
    MAX_COMPLEXITY,
    MAX_IMPORTANCE,
    MAX_POINTS,
    MIN_COMPLEXITY,
    MIN_IMPORTANCE,
    MIN_POINTS,
    compute_points,
    ensure_valid_scoring,
)
from .ordering import get_task_category
from .positions import UNINITIALIZED_POSITION


class Task(models.Model):
    """
    Represents a task with the properties used for ordering.

    Attributes:
        name: The task's descriptive title
        importance: User-provided rating from 0-50
        complexity: User-provided rating from 1-9
        points: Score derived from importance and complexity (never set directly)
        planned_date: Day the user plans to work on the task (optional)
        due_date: Deadline (optional)
        is_completed: Completed tasks are filtered out by callers before ordering
        position: Sibling ordering key, higher sorts earlier; 0 means uninitialized
        parent: Parent task; tasks sharing a parent form one sibling group
    """

    name = models.CharField(max_length=200, help_text="Task name")
    importance = models.IntegerField(
        default=MIN_IMPORTANCE,
        validators=[MinValueValidator(MIN_IMPORTANCE), MaxValueValidator(MAX_IMPORTANCE)],
        help_text="Importance rating from 0 (none) to 50 (highest)"
    )
    complexity = models.IntegerField(
        default=3,
        validators=[MinValueValidator(MIN_COMPLEXITY), MaxValueValidator(MAX_COMPLEXITY)],
        help_text="Complexity rating from 1 (trivial) to 9 (hardest)"
    )
    points = models.IntegerField(
        default=0,
        editable=False,
        validators=[MinValueValidator(MIN_POINTS), MaxValueValidator(MAX_POINTS)],
        help_text="Derived score, recomputed on every save"
    )
    planned_date = models.DateField(null=True, blank=True, help_text="Planned day (optional)")
    due_date = models.DateField(null=True, blank=True, help_text="Due day (optional)")
    is_completed = models.BooleanField(default=False)
    position = models.FloatField(
        default=UNINITIALIZED_POSITION,
        help_text="Sibling ordering key; higher values sort earlier"
    )
    parent = models.ForeignKey(
        'self',
        null=True,
        blank=True,
        related_name='subtasks',
        on_delete=models.CASCADE
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-position', '-created_at']

    def __str__(self):
        return f"{self.name} ({self.points} pts)"

    def save(self, *args, **kwargs):
        # Invalid ratings are rejected, never clamped into a stored score
        ensure_valid_scoring(self.importance, self.complexity)
        self.points = compute_points(self.importance, self.complexity)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and {'importance', 'complexity'} & set(update_fields):
            kwargs['update_fields'] = set(update_fields) | {'points'}
        super().save(*args, **kwargs)

    def category(self, context):
        """The task's display category for the given date context."""
        return get_task_category(self, context)

    def siblings(self):
        """Tasks sharing this task's parent (itself included), in display order."""
        return Task.objects.filter(parent_id=self.parent_id).order_by('-position', '-created_at')
