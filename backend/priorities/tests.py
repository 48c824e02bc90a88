"""
Unit Tests for the task priority engine.

This module covers points calculation, date handling, categorization, display
ordering, drag-and-drop positions, the Task model and the API endpoints. All
date-dependent tests run against a fixed reference day.
"""

from dataclasses import FrozenInstanceError
from datetime import date, datetime, timedelta, timezone as dt_timezone
from io import StringIO
import json
import math

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from .dates import (
    create_date_context,
    date_context_for,
    is_date_urgent,
    normalize_date,
    safe_normalize_date,
)
from .errors import ErrorCode, InvalidMove, MalformedDate, OutOfRangeInput
from .models import Task
from .ordering import (
    TaskCategory,
    TaskPrioritizer,
    compare_tasks_priority,
    get_category_priority,
    get_effective_date,
    get_task_category,
    is_collected_task,
    order_tasks,
)
from .points import (
    compute_points,
    ensure_valid_scoring,
    get_default_task_values,
    get_new_default_task_values,
    get_priority_level,
    is_new_default_task,
    validate_complexity,
    validate_importance,
    validate_points,
    validate_tasks,
)
from .positions import (
    calculate_reordered_position,
    group_by_parent,
    is_gap_exhausted,
    move_neighbours,
    order_by_position,
    rebalance_positions,
    seed_positions,
)


TODAY = date(2025, 6, 15)
YESTERDAY = TODAY - timedelta(days=1)
TOMORROW = TODAY + timedelta(days=1)
DAY_AFTER_TOMORROW = TODAY + timedelta(days=2)
NEXT_WEEK = TODAY + timedelta(days=7)


def make_task(task_id, importance=10, complexity=1, points=None, **fields):
    """Build a task payload; points default to the derived value."""
    task = {
        'id': task_id,
        'importance': importance,
        'complexity': complexity,
        'points': compute_points(importance, complexity) if points is None else points,
    }
    task.update(fields)
    return task


def scenario_tasks():
    """Collected, overdue, today, tomorrow and dateless tasks."""
    return [
        make_task('A', importance=0, complexity=3),
        make_task('B', importance=1, complexity=1, due_date=YESTERDAY.isoformat()),
        make_task('C', importance=1, complexity=1, due_date=TODAY.isoformat()),
        make_task('D', importance=30, complexity=1, planned_date=TOMORROW.isoformat()),
        make_task('E', importance=25, complexity=1),
    ]


class PointsCalculationTests(TestCase):
    """Tests for the points formula."""

    def test_reference_values(self):
        """Known importance/complexity pairs produce their documented points."""
        self.assertEqual(compute_points(50, 1), 500)
        self.assertEqual(compute_points(25, 5), 50)
        self.assertEqual(compute_points(30, 3), 100)
        self.assertEqual(compute_points(5, 2), 25)

    def test_zero_importance_gives_zero(self):
        """Importance 0 yields 0 points for every complexity."""
        for complexity in range(1, 10):
            self.assertEqual(compute_points(0, complexity), 0)

    def test_rounds_half_up(self):
        """Exact halves round up, other fractions to the nearest integer."""
        self.assertEqual(compute_points(1, 4), 3)    # 2.5
        self.assertEqual(compute_points(3, 4), 8)    # 7.5
        self.assertEqual(compute_points(10, 3), 33)  # 33.33
        self.assertEqual(compute_points(20, 3), 67)  # 66.67

    def test_out_of_range_inputs_clamped(self):
        """Inputs outside their interval are clamped instead of rejected."""
        self.assertEqual(compute_points(99, 0), 500)
        self.assertEqual(compute_points(-5, 3), 0)
        self.assertEqual(compute_points(50, 20), compute_points(50, 9))
        self.assertEqual(compute_points(float('inf'), 1), 500)

    def test_non_numeric_inputs_never_raise(self):
        """Garbage inputs fall back to the lower bound of their interval."""
        self.assertEqual(compute_points(None, None), 0)
        self.assertEqual(compute_points('abc', 3), 0)
        self.assertEqual(compute_points(50, 'x'), 500)
        self.assertEqual(compute_points(float('nan'), 3), 0)
        self.assertEqual(compute_points(25, float('nan')), 250)

    def test_points_within_bounds(self):
        """Every valid pair maps into [0, 500]."""
        for importance in range(0, 51):
            for complexity in range(1, 10):
                points = compute_points(importance, complexity)
                self.assertGreaterEqual(points, 0)
                self.assertLessEqual(points, 500)

    def test_monotonic_in_importance(self):
        """More importance never lowers the score."""
        for complexity in range(1, 10):
            for importance in range(0, 50):
                self.assertLessEqual(
                    compute_points(importance, complexity),
                    compute_points(importance + 1, complexity)
                )

    def test_monotonic_in_complexity(self):
        """More complexity never raises the score."""
        for importance in range(0, 51):
            for complexity in range(1, 9):
                self.assertGreaterEqual(
                    compute_points(importance, complexity),
                    compute_points(importance, complexity + 1)
                )


class ValidationTests(TestCase):
    """Tests for the strict boundary validators."""

    def test_importance_accepts_closed_interval(self):
        for importance in range(0, 51):
            self.assertTrue(validate_importance(importance))

    def test_complexity_accepts_closed_interval(self):
        for complexity in range(1, 10):
            self.assertTrue(validate_complexity(complexity))

    def test_rejects_out_of_range(self):
        """Values just outside each interval are rejected."""
        self.assertFalse(validate_importance(-1))
        self.assertFalse(validate_importance(51))
        self.assertFalse(validate_complexity(0))
        self.assertFalse(validate_complexity(10))

    def test_rejects_non_integers(self):
        """Fractions, NaN, infinities, strings, booleans and None are rejected."""
        for value in (2.5, float('nan'), float('inf'), float('-inf'), '5', True, None):
            self.assertFalse(validate_importance(value), value)
            self.assertFalse(validate_complexity(value), value)

    def test_integral_float_accepted(self):
        """A float with an integral value counts as an integer."""
        self.assertTrue(validate_importance(5.0))
        self.assertTrue(validate_complexity(3.0))

    def test_validate_points(self):
        self.assertTrue(validate_points(0))
        self.assertTrue(validate_points(500))
        self.assertFalse(validate_points(501))
        self.assertFalse(validate_points(12.5))

    def test_ensure_valid_scoring_names_field(self):
        """The raised error identifies the offending field."""
        with self.assertRaises(OutOfRangeInput) as ctx:
            ensure_valid_scoring(51, 3)
        self.assertEqual(ctx.exception.field, 'importance')
        self.assertEqual(ctx.exception.code, ErrorCode.ERR_OUT_OF_RANGE)

        with self.assertRaises(OutOfRangeInput) as ctx:
            ensure_valid_scoring(10, 0)
        self.assertEqual(ctx.exception.field, 'complexity')

    def test_ensure_valid_scoring_accepts_valid_pair(self):
        self.assertIsNone(ensure_valid_scoring(50, 9))

    def test_out_of_range_is_value_error(self):
        """Callers catching ValueError also catch out-of-range input."""
        with self.assertRaises(ValueError):
            ensure_valid_scoring(-1, 1)

    def test_validate_tasks_reports_each_problem(self):
        """Batch validation reports missing and out-of-range ratings per task."""
        tasks = [
            {'id': 1, 'importance': 10, 'complexity': 2},
            {'id': 2, 'importance': 60, 'complexity': 2},
            {'id': 3, 'importance': 10},
        ]
        errors = validate_tasks(tasks)

        self.assertEqual(len(errors), 2)
        self.assertEqual(errors[0].code, ErrorCode.ERR_OUT_OF_RANGE)
        self.assertEqual(errors[0].task_id, 2)
        self.assertEqual(errors[0].field, 'importance')
        self.assertEqual(errors[1].code, ErrorCode.ERR_MISSING_FIELD)
        self.assertEqual(errors[1].field, 'complexity')

    def test_validate_tasks_empty(self):
        errors = validate_tasks([])
        self.assertEqual([e.code for e in errors], [ErrorCode.ERR_EMPTY_TASKS])

    def test_validate_tasks_ignores_dates(self):
        """Malformed dates are not a validation failure."""
        tasks = [{'id': 1, 'importance': 10, 'complexity': 2, 'due_date': 'soon'}]
        self.assertEqual(validate_tasks(tasks), [])


class DefaultValuesTests(TestCase):
    """Tests for default ratings and priority levels."""

    def test_explicit_task_defaults(self):
        self.assertEqual(
            get_default_task_values(),
            {'importance': 50, 'complexity': 1, 'points': 500}
        )

    def test_collected_task_defaults(self):
        defaults = get_new_default_task_values()
        self.assertEqual(defaults, {'importance': 0, 'complexity': 3, 'points': 0})
        self.assertTrue(is_new_default_task(defaults['importance'], defaults['complexity']))
        self.assertEqual(compute_points(defaults['importance'], defaults['complexity']), defaults['points'])

    def test_is_new_default_task_requires_exact_pair(self):
        self.assertFalse(is_new_default_task(0, 2))
        self.assertFalse(is_new_default_task(1, 3))
        self.assertFalse(is_new_default_task(50, 1))

    def test_priority_levels(self):
        """Level boundaries sit at 100, 200, 300 and 400 points."""
        self.assertEqual(get_priority_level(500), 'critical')
        self.assertEqual(get_priority_level(400), 'critical')
        self.assertEqual(get_priority_level(399), 'high')
        self.assertEqual(get_priority_level(200), 'medium')
        self.assertEqual(get_priority_level(100), 'low')
        self.assertEqual(get_priority_level(99), 'minimal')
        self.assertEqual(get_priority_level(0), 'minimal')


class DateContextTests(TestCase):
    """Tests for the reference date context."""

    def test_context_from_instant(self):
        """Time of day is discarded; tomorrow and the day after follow today."""
        context = create_date_context(datetime(2025, 6, 15, 23, 59, 59))
        self.assertEqual(context.today, TODAY)
        self.assertEqual(context.tomorrow, TOMORROW)
        self.assertEqual(context.day_after_tomorrow, DAY_AFTER_TOMORROW)

    def test_context_crosses_year_boundary(self):
        context = create_date_context(datetime(2025, 12, 31, 8, 0))
        self.assertEqual(context.tomorrow, date(2026, 1, 1))
        self.assertEqual(context.day_after_tomorrow, date(2026, 1, 2))

    def test_context_for_day(self):
        self.assertEqual(date_context_for(TODAY), create_date_context(datetime(2025, 6, 15)))

    def test_context_defaults_to_now(self):
        context = create_date_context()
        self.assertEqual(context.tomorrow - context.today, timedelta(days=1))

    def test_context_is_immutable(self):
        context = date_context_for(TODAY)
        with self.assertRaises(FrozenInstanceError):
            context.today = TOMORROW


class NormalizeDateTests(TestCase):
    """Tests for date normalization and urgency."""

    def setUp(self):
        self.context = date_context_for(TODAY)

    def test_same_day_inputs_normalize_equal(self):
        """Different representations of one day compare equal."""
        values = [
            '2025-06-15',
            '2025-06-15T09:30:00',
            '2025-06-15T00:00:00.000Z',
            datetime(2025, 6, 15, 18, 45),
            date(2025, 6, 15),
        ]
        for value in values:
            self.assertEqual(normalize_date(value), TODAY, value)

    def test_aware_datetime_keeps_its_calendar_day(self):
        value = datetime(2025, 6, 15, 23, 30, tzinfo=dt_timezone(timedelta(hours=2)))
        self.assertEqual(normalize_date(value), TODAY)
        self.assertEqual(normalize_date('2025-06-15T23:30:00+02:00'), TODAY)

    def test_malformed_date_raises(self):
        for value in ('not a date', '2025-02-30', '', 12345):
            with self.assertRaises(MalformedDate):
                normalize_date(value)

    def test_safe_normalize_degrades_to_none(self):
        """Malformed input is logged and treated as absent."""
        with self.assertLogs('priorities.dates', level='WARNING'):
            self.assertIsNone(safe_normalize_date('31/31/2025'))
        self.assertIsNone(safe_normalize_date(None))
        self.assertIsNone(safe_normalize_date(''))
        self.assertEqual(safe_normalize_date('2025-06-15'), TODAY)

    def test_urgent_window(self):
        """Past, today and tomorrow are urgent; the day after is not."""
        self.assertTrue(is_date_urgent(date(2024, 1, 1), self.context))
        self.assertTrue(is_date_urgent(YESTERDAY, self.context))
        self.assertTrue(is_date_urgent(TODAY.isoformat(), self.context))
        self.assertTrue(is_date_urgent(TOMORROW, self.context))
        self.assertFalse(is_date_urgent(DAY_AFTER_TOMORROW, self.context))
        self.assertFalse(is_date_urgent(NEXT_WEEK, self.context))

    def test_malformed_date_is_not_urgent(self):
        with self.assertLogs('priorities.dates', level='WARNING'):
            self.assertFalse(is_date_urgent('yesterday-ish', self.context))


class EffectiveDateTests(TestCase):
    """Tests for effective date resolution."""

    def setUp(self):
        self.context = date_context_for(TODAY)

    def test_urgent_due_date_overrides_planned(self):
        task = make_task(1, due_date=TOMORROW.isoformat(), planned_date=NEXT_WEEK.isoformat())
        self.assertEqual(get_effective_date(task, self.context), TOMORROW)

    def test_distant_due_date_yields_to_planned(self):
        task = make_task(1, due_date=NEXT_WEEK.isoformat(), planned_date=DAY_AFTER_TOMORROW.isoformat())
        self.assertEqual(get_effective_date(task, self.context), DAY_AFTER_TOMORROW)

    def test_distant_due_date_alone_is_ignored(self):
        """A far-off deadline without a plan leaves the task dateless."""
        task = make_task(1, due_date=NEXT_WEEK.isoformat())
        self.assertIsNone(get_effective_date(task, self.context))

    def test_no_dates(self):
        self.assertIsNone(get_effective_date(make_task(1), self.context))

    def test_planned_date_used_when_no_due_date(self):
        task = make_task(1, planned_date=YESTERDAY)
        self.assertEqual(get_effective_date(task, self.context), YESTERDAY)

    def test_malformed_planned_date_is_absent(self):
        task = make_task(1, planned_date='someday')
        with self.assertLogs('priorities.dates', level='WARNING'):
            self.assertIsNone(get_effective_date(task, self.context))


class CategoryTests(TestCase):
    """Tests for task categorization."""

    def setUp(self):
        self.context = date_context_for(TODAY)

    def test_untriaged_task_is_collected(self):
        task = {'importance': 0, 'complexity': 3, 'points': 0}
        self.assertTrue(is_collected_task(task, self.context))
        self.assertEqual(get_task_category(task, self.context), TaskCategory.COLLECTED)

    def test_planned_untriaged_task_is_not_collected(self):
        """Giving a default task a date moves it out of the inbox."""
        task = {'importance': 0, 'complexity': 3, 'points': 0, 'planned_date': TODAY.isoformat()}
        self.assertFalse(is_collected_task(task, self.context))
        self.assertEqual(get_task_category(task, self.context), TaskCategory.TODAY)

    def test_untriaged_task_with_distant_due_date_stays_collected(self):
        task = {'importance': 0, 'complexity': 3, 'points': 0, 'due_date': NEXT_WEEK.isoformat()}
        self.assertEqual(get_task_category(task, self.context), TaskCategory.COLLECTED)

    def test_day_relative_categories(self):
        cases = [
            (YESTERDAY, TaskCategory.OVERDUE),
            (date(2024, 12, 31), TaskCategory.OVERDUE),
            (TODAY, TaskCategory.TODAY),
            (TOMORROW, TaskCategory.TOMORROW),
            (DAY_AFTER_TOMORROW, TaskCategory.FUTURE),
            (NEXT_WEEK, TaskCategory.FUTURE),
        ]
        for planned, expected in cases:
            task = make_task(1, planned_date=planned.isoformat())
            self.assertEqual(get_task_category(task, self.context), expected, planned)

    def test_triaged_task_without_date_is_no_date(self):
        self.assertEqual(get_task_category(make_task(1), self.context), TaskCategory.NO_DATE)

    def test_distant_due_date_only_is_no_date(self):
        task = make_task(1, due_date=NEXT_WEEK.isoformat())
        self.assertEqual(get_task_category(task, self.context), TaskCategory.NO_DATE)

    def test_malformed_date_falls_back_to_no_date(self):
        task = make_task(1, planned_date='2025-13-40')
        with self.assertLogs('priorities.dates', level='WARNING'):
            self.assertEqual(get_task_category(task, self.context), TaskCategory.NO_DATE)

    def test_model_like_objects_are_classified(self):
        """Objects exposing task attributes work like mappings."""
        class Record:
            importance = 10
            complexity = 1
            points = 100
            planned_date = TOMORROW
            due_date = None

        self.assertEqual(get_task_category(Record(), self.context), TaskCategory.TOMORROW)

    def test_category_priority_is_a_bijection(self):
        """Ranks are 1..6 in display order."""
        ordered = [
            TaskCategory.COLLECTED,
            TaskCategory.OVERDUE,
            TaskCategory.TODAY,
            TaskCategory.TOMORROW,
            TaskCategory.NO_DATE,
            TaskCategory.FUTURE,
        ]
        ranks = [get_category_priority(category) for category in ordered]
        self.assertEqual(ranks, [1, 2, 3, 4, 5, 6])
        self.assertEqual(set(TaskCategory), set(ordered))


class ComparatorTests(TestCase):
    """Tests for the display order comparator."""

    def setUp(self):
        self.context = date_context_for(TODAY)

    def test_collected_precedes_everything(self):
        collected = make_task('c', importance=0, complexity=3)
        others = [
            make_task('o', importance=50, due_date=YESTERDAY.isoformat()),
            make_task('t', importance=50, planned_date=TODAY.isoformat()),
            make_task('n', importance=50),
            make_task('f', importance=50, planned_date=NEXT_WEEK.isoformat()),
        ]
        for other in others:
            self.assertLess(compare_tasks_priority(collected, other, self.context), 0)
            self.assertGreater(compare_tasks_priority(other, collected, self.context), 0)

    def test_more_overdue_task_first(self):
        """Between overdue tasks the earlier date wins, regardless of points."""
        old = make_task('old', importance=1, due_date=(TODAY - timedelta(days=10)).isoformat())
        recent = make_task('recent', importance=50, due_date=YESTERDAY.isoformat())
        self.assertLess(compare_tasks_priority(old, recent, self.context), 0)
        self.assertEqual(order_tasks([recent, old], self.context), [old, recent])

    def test_overdue_same_day_uses_points(self):
        low = make_task('low', importance=5, due_date=YESTERDAY.isoformat())
        high = make_task('high', importance=40, due_date=YESTERDAY.isoformat())
        self.assertEqual(order_tasks([low, high], self.context), [high, low])

    def test_same_category_higher_points_first(self):
        for extra in ({}, {'planned_date': TODAY.isoformat()}, {'planned_date': NEXT_WEEK.isoformat()}):
            low = make_task('low', importance=10, **extra)
            high = make_task('high', importance=20, **extra)
            self.assertGreater(compare_tasks_priority(low, high, self.context), 0)

    def test_future_tasks_ignore_date_order(self):
        """Future tasks are ordered by points only."""
        near = make_task('near', importance=5, planned_date=DAY_AFTER_TOMORROW.isoformat())
        far = make_task('far', importance=40, planned_date=(TODAY + timedelta(days=60)).isoformat())
        self.assertEqual(order_tasks([near, far], self.context), [far, near])

    def test_ties_keep_input_order(self):
        first = make_task('first', importance=10)
        second = make_task('second', importance=10)
        self.assertEqual(compare_tasks_priority(first, second, self.context), 0)
        self.assertEqual(order_tasks([first, second], self.context), [first, second])
        self.assertEqual(order_tasks([second, first], self.context), [second, first])

    def test_missing_points_derived_from_ratings(self):
        stored = make_task('stored', importance=10, complexity=1)
        derived = {'id': 'derived', 'importance': 20, 'complexity': 1}
        self.assertEqual(order_tasks([stored, derived], self.context), [derived, stored])

    def test_invalid_stored_points_derived_from_ratings(self):
        """Points that are not an integer in [0, 500] are recomputed instead of compared."""
        garbled = make_task('garbled', importance=20, complexity=1, points='999')
        oversized = make_task('oversized', importance=5, complexity=1, points=9000)
        stored = make_task('stored', importance=10, complexity=1)

        ordered = order_tasks([oversized, stored, garbled], self.context)
        self.assertEqual([t['id'] for t in ordered], ['garbled', 'stored', 'oversized'])

    def test_end_to_end_scenario(self):
        """Collected, overdue, today, tomorrow, dateless: in that order."""
        tasks = scenario_tasks()
        self.assertEqual([t['points'] for t in tasks], [0, 10, 10, 300, 250])

        ordered = order_tasks(list(reversed(tasks)), self.context)
        self.assertEqual([t['id'] for t in ordered], ['A', 'B', 'C', 'D', 'E'])

    def test_sorting_is_idempotent(self):
        tasks = scenario_tasks() + [
            make_task('F', importance=25),
            make_task('G', importance=0, complexity=3),
            make_task('H', importance=7, planned_date=NEXT_WEEK.isoformat()),
        ]
        once = order_tasks(tasks, self.context)
        twice = order_tasks(once, self.context)
        self.assertEqual(once, twice)
        self.assertEqual(order_tasks(tasks, self.context), once)

    def test_input_not_mutated(self):
        tasks = scenario_tasks()
        snapshot = json.loads(json.dumps(tasks))
        order_tasks(list(reversed(tasks)), self.context)
        self.assertEqual(tasks, snapshot)

    def test_subtasks_ordered_by_position(self):
        """Nested subtasks come back sorted by descending position."""
        parent = make_task('P', subtasks=[
            {'id': 's1', 'position': 100},
            {'id': 's2', 'position': 300, 'subtasks': [
                {'id': 's2a', 'position': 1},
                {'id': 's2b', 'position': 2},
            ]},
            {'id': 's3', 'position': 200},
        ])
        ordered = order_tasks([parent], self.context)[0]

        self.assertEqual([s['id'] for s in ordered['subtasks']], ['s2', 's3', 's1'])
        self.assertEqual([s['id'] for s in ordered['subtasks'][0]['subtasks']], ['s2b', 's2a'])
        self.assertEqual([s['id'] for s in parent['subtasks']], ['s1', 's2', 's3'])


class TaskPrioritizerTests(TestCase):
    """Tests for the per-pass prioritizer."""

    def setUp(self):
        self.prioritizer = TaskPrioritizer(date_context_for(TODAY))

    def test_describe(self):
        task = make_task('D', importance=30, planned_date=TOMORROW.isoformat())
        self.assertEqual(self.prioritizer.describe(task), {
            'category': 'tomorrow',
            'category_rank': 4,
            'effective_date': TOMORROW.isoformat(),
            'is_collected': False,
            'points': 300,
            'priority_level': 'high',
        })

    def test_describe_collected(self):
        description = self.prioritizer.describe(make_task('A', importance=0, complexity=3))
        self.assertTrue(description['is_collected'])
        self.assertIsNone(description['effective_date'])

    def test_group_by_category(self):
        """Buckets follow category rank and omit empty categories."""
        tasks = scenario_tasks() + [make_task('F', importance=40)]
        groups = self.prioritizer.group_by_category(tasks)

        self.assertEqual(list(groups), [
            TaskCategory.COLLECTED,
            TaskCategory.OVERDUE,
            TaskCategory.TODAY,
            TaskCategory.TOMORROW,
            TaskCategory.NO_DATE,
        ])
        self.assertEqual([t['id'] for t in groups[TaskCategory.NO_DATE]], ['F', 'E'])

    def test_default_context_is_captured_once(self):
        prioritizer = TaskPrioritizer()
        context = prioritizer.context
        prioritizer.order(scenario_tasks())
        self.assertIs(prioritizer.context, context)


class PositionAllocatorTests(TestCase):
    """Tests for drag-and-drop position calculation."""

    def setUp(self):
        self.siblings = [
            {'id': 1, 'position': 10000},
            {'id': 2, 'position': 9900},
            {'id': 3, 'position': 9800},
            {'id': 4, 'position': 9700},
        ]

    def remaining(self, old_index):
        return [s['position'] for i, s in enumerate(self.siblings) if i != old_index]

    def test_same_index_is_noop(self):
        self.assertEqual(calculate_reordered_position(self.siblings, 2, 2), 9800)

    def test_move_to_front(self):
        """The moved item lands above every remaining sibling."""
        position = calculate_reordered_position(self.siblings, 2, 0)
        self.assertEqual(position, 10100)
        self.assertGreater(position, max(self.remaining(2)))

    def test_move_to_back(self):
        """The moved item lands below every remaining sibling, at least 1."""
        position = calculate_reordered_position(self.siblings, 0, 3)
        self.assertEqual(position, 9600)
        self.assertLess(position, min(self.remaining(0)))
        self.assertGreaterEqual(position, 1)

    def test_move_up_between_neighbours(self):
        position = calculate_reordered_position(self.siblings, 3, 1)
        self.assertEqual(position, 9950)
        self.assertTrue(9900 < position < 10000)

    def test_move_down_between_neighbours(self):
        position = calculate_reordered_position(self.siblings, 0, 2)
        self.assertEqual(position, 9750)
        self.assertTrue(9700 < position < 9800)

    def test_midpoint_is_floored(self):
        siblings = [{'position': 10}, {'position': 7}, {'position': 1}]
        self.assertEqual(calculate_reordered_position(siblings, 2, 1), 8)

    def test_float_positions(self):
        siblings = [{'position': 10.5}, {'position': 5.25}, {'position': 0.5}]
        position = calculate_reordered_position(siblings, 2, 1)
        self.assertEqual(position, math.floor((10.5 + 5.25) / 2))

    def test_front_reseeds_degenerate_group(self):
        siblings = [{'position': 0}, {'position': -5}, {'position': 3}]
        self.assertEqual(calculate_reordered_position(siblings, 2, 0), 10000)

    def test_back_never_below_one(self):
        siblings = [{'position': 50}, {'position': 40}, {'position': 30}]
        self.assertEqual(calculate_reordered_position(siblings, 0, 2), 1)

    def test_back_of_degenerate_group_is_one(self):
        siblings = [{'position': 5}, {'position': 0}, {'position': -1}]
        self.assertEqual(calculate_reordered_position(siblings, 0, 2), 1)

    def test_exhausted_gap_falls_back_above(self):
        """With no integer between neighbours the item goes 50 above the upper one."""
        siblings = [{'position': 300}, {'position': 101}, {'position': 100}]
        with self.assertLogs('priorities.positions', level='WARNING'):
            position = calculate_reordered_position(siblings, 0, 1)
        self.assertEqual(position, 151)

    def test_single_sibling(self):
        self.assertEqual(calculate_reordered_position([{'position': 42}], 0, 0), 42)

    def test_model_like_siblings(self):
        class Sibling:
            def __init__(self, position):
                self.position = position

        siblings = [Sibling(300), Sibling(200), Sibling(100)]
        self.assertEqual(calculate_reordered_position(siblings, 2, 0), 400)

    def test_invalid_indices_rejected(self):
        for old_index, new_index in ((4, 0), (0, 4), (-1, 0), (0, -1), (True, 0), (0, 1.5)):
            with self.assertRaises(InvalidMove):
                calculate_reordered_position(self.siblings, old_index, new_index)

    def test_empty_siblings_rejected(self):
        with self.assertRaises(InvalidMove):
            calculate_reordered_position([], 0, 0)

    def test_move_neighbours(self):
        self.assertEqual(move_neighbours(self.siblings, 2, 0), (None, 10000))
        self.assertEqual(move_neighbours(self.siblings, 0, 3), (9700, None))
        self.assertEqual(move_neighbours(self.siblings, 3, 1), (10000, 9900))

    def test_is_gap_exhausted(self):
        self.assertTrue(is_gap_exhausted(101, 100))
        self.assertTrue(is_gap_exhausted(100, 100))
        self.assertFalse(is_gap_exhausted(102, 100))
        self.assertTrue(is_gap_exhausted(2.2, 1.1))
        self.assertFalse(is_gap_exhausted(10.5, 5.25))

    def test_fractional_neighbours_without_room(self):
        """A floored midpoint at or below the lower neighbour counts as no room."""
        siblings = [{'position': 2.2}, {'position': 1.1}, {'position': 0.5}]
        with self.assertLogs('priorities.positions', level='WARNING'):
            position = calculate_reordered_position(siblings, 2, 1)
        self.assertAlmostEqual(position, 52.2)

    def test_midpoint_lands_strictly_between_when_room_exists(self):
        """Whenever the gap is not exhausted the result sits between its neighbours."""
        pairs = [(10000, 9900), (10, 7), (10.5, 5.25), (3.9, 1.2), (100, 98)]
        for above, below in pairs:
            self.assertFalse(is_gap_exhausted(above, below), (above, below))
            siblings = [{'position': above}, {'position': below}, {'position': 0.5}]
            position = calculate_reordered_position(siblings, 2, 1)
            self.assertTrue(below < position < above, (above, below, position))

    def test_repeated_bisection_eventually_exhausts_gap(self):
        """Squeezing into the same slot halves the gap until nothing is left."""
        above, below = 10000, 9900
        moves = 0
        while not is_gap_exhausted(above, below):
            siblings = [{'position': above}, {'position': below}, {'position': 1}]
            below = calculate_reordered_position(siblings, 2, 1)
            moves += 1
        self.assertEqual(moves, 7)


class PositionMaintenanceTests(TestCase):
    """Tests for seeding, grouping and rebalancing positions."""

    def test_non_numeric_positions_read_as_uninitialized(self):
        siblings = [
            {'id': 'a', 'position': '5'},
            {'id': 'b', 'position': 3},
            {'id': 'c', 'position': True},
            {'id': 'd', 'position': float('nan')},
            {'id': 'e', 'position': 7.5},
        ]
        self.assertEqual([s['id'] for s in order_by_position(siblings)], ['e', 'b', 'a', 'c', 'd'])
        self.assertEqual(
            [s['id'] for s, _ in seed_positions(siblings)],
            ['a', 'c', 'd']
        )

    def test_order_by_position_is_stable(self):
        siblings = [
            {'id': 'a', 'position': 100},
            {'id': 'b', 'position': 300},
            {'id': 'c', 'position': 100},
            {'id': 'd'},
        ]
        self.assertEqual([s['id'] for s in order_by_position(siblings)], ['b', 'a', 'c', 'd'])

    def test_seed_only_uninitialized(self):
        """Seeding skips siblings that already have a position but keeps their slot."""
        siblings = [
            {'id': 1, 'position': 0},
            {'id': 2, 'position': 0},
            {'id': 3, 'position': 500},
            {'id': 4},
        ]
        assignments = seed_positions(siblings)
        self.assertEqual(
            [(s['id'], position) for s, position in assignments],
            [(1, 10000), (2, 9900), (4, 9700)]
        )

    def test_group_by_parent(self):
        tasks = [
            {'id': 1, 'parent_id': None},
            {'id': 2, 'parent_id': 1},
            {'id': 3},
            {'id': 4, 'parent_id': 1},
        ]
        groups = group_by_parent(tasks)
        self.assertEqual({k: [t['id'] for t in v] for k, v in groups.items()}, {None: [1, 3], 1: [2, 4]})

    def test_rebalance_preserves_order_with_spacing(self):
        siblings = [{'id': i} for i in range(3)]
        self.assertEqual([p for _, p in rebalance_positions(siblings)], [10000, 9900, 9800])

    def test_rebalance_large_group_stays_positive(self):
        siblings = [{'id': i} for i in range(150)]
        positions = [p for _, p in rebalance_positions(siblings)]
        self.assertEqual(positions[-1], 100)
        self.assertEqual(positions, sorted(positions, reverse=True))
        self.assertEqual(len(set(positions)), 150)


class TaskModelTests(TestCase):
    """Tests for the persisted Task model."""

    def test_points_computed_on_save(self):
        task = Task.objects.create(name='Write report', importance=30, complexity=3)
        self.assertEqual(task.points, 100)

    def test_points_recomputed_on_update(self):
        task = Task.objects.create(name='Write report', importance=30, complexity=3)
        task.importance = 50
        task.save(update_fields=['importance'])
        task.refresh_from_db()
        self.assertEqual(task.points, 167)

    def test_new_task_defaults_are_collected(self):
        task = Task.objects.create(name='Inbox item')
        self.assertEqual((task.importance, task.complexity, task.points), (0, 3, 0))
        self.assertEqual(task.position, 0)
        self.assertEqual(task.category(date_context_for(TODAY)), TaskCategory.COLLECTED)

    def test_category_uses_model_dates(self):
        task = Task.objects.create(name='Call back', importance=10, complexity=2, due_date=YESTERDAY)
        self.assertEqual(task.category(date_context_for(TODAY)), TaskCategory.OVERDUE)

    def test_siblings_in_position_order(self):
        parent = Task.objects.create(name='Project', position=10000)
        low = Task.objects.create(name='Low', parent=parent, position=100)
        high = Task.objects.create(name='High', parent=parent, position=200)

        self.assertEqual(list(low.siblings()), [high, low])
        self.assertEqual(list(parent.siblings()), [parent])

    def test_invalid_ratings_rejected_on_create(self):
        """Out-of-range ratings raise before anything is written."""
        with self.assertRaises(OutOfRangeInput) as ctx:
            Task.objects.create(name='Bad', importance=99, complexity=0)
        self.assertEqual(ctx.exception.field, 'importance')
        self.assertEqual(Task.objects.count(), 0)

        with self.assertRaises(OutOfRangeInput):
            Task.objects.create(name='Bad', importance=10, complexity=10)
        self.assertEqual(Task.objects.count(), 0)

    def test_invalid_ratings_rejected_on_update(self):
        """A failed update leaves the stored ratings and points untouched."""
        task = Task.objects.create(name='Write report', importance=30, complexity=3)
        task.complexity = 0
        with self.assertRaises(OutOfRangeInput):
            task.save(update_fields=['complexity'])

        stored = Task.objects.get(pk=task.pk)
        self.assertEqual((stored.importance, stored.complexity, stored.points), (30, 3, 100))


class InitializePositionsCommandTests(TestCase):
    """Tests for the initialize_positions management command."""

    def test_seeds_each_sibling_group_by_points(self):
        top = Task.objects.create(name='Top', importance=50, complexity=1)
        low = Task.objects.create(name='Low', importance=10, complexity=1)
        mid = Task.objects.create(name='Mid', importance=30, complexity=1, position=5000)
        child = Task.objects.create(name='Child', parent=top, importance=5, complexity=1)

        out = StringIO()
        call_command('initialize_positions', stdout=out)

        for task in (top, low, mid, child):
            task.refresh_from_db()
        self.assertEqual(top.position, 10000)
        self.assertEqual(mid.position, 5000)
        self.assertEqual(low.position, 9800)
        self.assertEqual(child.position, 10000)
        self.assertIn('3 task(s)', out.getvalue())

    def test_dry_run_writes_nothing(self):
        task = Task.objects.create(name='Only', importance=10, complexity=1)

        out = StringIO()
        call_command('initialize_positions', '--dry-run', stdout=out)

        task.refresh_from_db()
        self.assertEqual(task.position, 0)
        self.assertIn('Would initialize positions for 1 task(s)', out.getvalue())


class APIEndpointTests(APITestCase):
    """Tests for the API endpoints."""

    def setUp(self):
        cache.clear()

    def post(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def test_order_endpoint_scenario(self):
        """POST /api/tasks/order/ returns tasks in display order with categories."""
        data = {'tasks': list(reversed(scenario_tasks())), 'today': TODAY.isoformat()}
        response = self.post('/api/tasks/order/', data)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual([t['id'] for t in response.data['tasks']], ['A', 'B', 'C', 'D', 'E'])
        self.assertEqual(
            [t['category'] for t in response.data['tasks']],
            ['collected', 'overdue', 'today', 'tomorrow', 'no-date']
        )
        self.assertEqual(response.data['date_context']['today'], TODAY.isoformat())
        self.assertEqual(response.data['summary']['categories']['future'], 0)
        self.assertEqual(response.data['summary']['categories']['today'], 1)

    def test_order_endpoint_recomputes_points(self):
        data = {
            'tasks': [{'id': 1, 'importance': 30, 'complexity': 3, 'points': 999}],
            'today': TODAY.isoformat()
        }
        response = self.post('/api/tasks/order/', data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['tasks'][0]['points'], 100)

    def test_order_endpoint_groups(self):
        data = {'tasks': scenario_tasks(), 'today': TODAY.isoformat(), 'group': True}
        response = self.post('/api/tasks/order/', data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [(g['category'], g['task_ids']) for g in response.data['groups']],
            [('collected', ['A']), ('overdue', ['B']), ('today', ['C']),
             ('tomorrow', ['D']), ('no-date', ['E'])]
        )

    def test_order_endpoint_without_today(self):
        data = {'tasks': [make_task(1)]}
        response = self.post('/api/tasks/order/', data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['tasks'][0]['category'], 'no-date')

    def test_order_endpoint_empty_tasks(self):
        response = self.post('/api/tasks/order/', {'tasks': []})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_EMPTY_TASKS.value)

    def test_order_endpoint_rejects_out_of_range(self):
        """Invalid ratings reject the whole request."""
        data = {'tasks': [make_task(1), {'id': 2, 'importance': 51, 'complexity': 3}]}
        response = self.post('/api/tasks/order/', data)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_OUT_OF_RANGE.value)
        self.assertEqual(response.data['errors'][0]['task_id'], 2)

    def test_order_endpoint_rejects_missing_rating(self):
        response = self.post('/api/tasks/order/', {'tasks': [{'id': 1, 'importance': 5}]})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_MISSING_FIELD.value)

    def test_order_endpoint_tolerates_malformed_dates(self):
        """A bad stored date downgrades one task instead of failing the list."""
        data = {
            'tasks': [
                make_task(1, importance=10, planned_date='not-a-date'),
                make_task(2, importance=5, planned_date=TODAY.isoformat()),
            ],
            'today': TODAY.isoformat()
        }
        with self.assertLogs('priorities.dates', level='WARNING'):
            response = self.post('/api/tasks/order/', data)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['id'] for t in response.data['tasks']], [2, 1])
        self.assertEqual(response.data['tasks'][1]['category'], 'no-date')
        self.assertEqual(response.data['warnings'], [{
            'error_code': ErrorCode.ERR_INVALID_DATE.value,
            'message': "Invalid date: 'not-a-date'",
            'field': 'planned_date',
            'task_id': 1,
        }])

    def test_order_endpoint_without_bad_dates_has_no_warnings(self):
        data = {'tasks': scenario_tasks(), 'today': TODAY.isoformat()}
        response = self.post('/api/tasks/order/', data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['warnings'], [])

    def test_order_endpoint_tolerates_bad_subtask_positions(self):
        """Non-numeric subtask positions sort as uninitialized instead of failing."""
        data = {
            'tasks': [make_task('P', subtasks=[
                {'id': 's1', 'position': '5'},
                {'id': 's2', 'position': 3},
                {'id': 's3', 'position': None},
            ])],
            'today': TODAY.isoformat()
        }
        response = self.post('/api/tasks/order/', data)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [s['id'] for s in response.data['tasks'][0]['subtasks']],
            ['s2', 's1', 's3']
        )

    def test_order_endpoint_rejects_array_body(self):
        """A bare JSON array is a client error, not a server error."""
        response = self.post('/api/tasks/order/', [make_task(1)])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_MISSING_FIELD.value)

    def test_points_endpoint(self):
        response = self.post('/api/tasks/points/', {'importance': 25, 'complexity': 5})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['points'], 50)
        self.assertEqual(response.data['priority_level'], 'minimal')

    def test_points_endpoint_rejects_invalid_ratings(self):
        for payload in (
            {'importance': 51, 'complexity': 1},
            {'importance': 10, 'complexity': 0},
            {'importance': 2.5, 'complexity': 1},
            {'importance': '5', 'complexity': 1},
            {'importance': 5},
        ):
            response = self.post('/api/tasks/points/', payload)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, payload)
            self.assertEqual(response.data['error_code'], ErrorCode.ERR_OUT_OF_RANGE.value)

    def test_reorder_endpoint(self):
        """POST /api/tasks/reorder/ returns the single position to store."""
        data = {
            'siblings': [
                {'id': 1, 'position': 10000},
                {'id': 2, 'position': 9900},
                {'id': 3, 'position': 9800},
            ],
            'old_index': 2,
            'new_index': 0
        }
        response = self.post('/api/tasks/reorder/', data)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], 3)
        self.assertEqual(response.data['position'], 10100)
        self.assertFalse(response.data['gap_exhausted'])
        self.assertNotIn('rebalanced', response.data)

    def test_reorder_endpoint_reports_exhausted_gap(self):
        data = {
            'siblings': [{'id': 1, 'position': 300}, {'id': 2, 'position': 101}, {'id': 3, 'position': 100}],
            'old_index': 0,
            'new_index': 1,
            'rebalance': True
        }
        with self.assertLogs('priorities.positions', level='WARNING'):
            response = self.post('/api/tasks/reorder/', data)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['position'], 151)
        self.assertTrue(response.data['gap_exhausted'])
        self.assertEqual(
            response.data['rebalanced'],
            [{'id': 2, 'position': 10000}, {'id': 1, 'position': 9900}, {'id': 3, 'position': 9800}]
        )

    def test_reorder_endpoint_rejects_bad_index(self):
        data = {'siblings': [{'id': 1, 'position': 100}], 'old_index': 0, 'new_index': 3}
        response = self.post('/api/tasks/reorder/', data)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], ErrorCode.ERR_INVALID_MOVE.value)
        self.assertEqual(response.data['field'], 'new_index')

    def test_reorder_endpoint_rejects_missing_siblings(self):
        response = self.post('/api/tasks/reorder/', {'old_index': 0, 'new_index': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_categories_endpoint(self):
        response = self.client.get('/api/tasks/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [c['category'] for c in response.data['categories']],
            ['collected', 'overdue', 'today', 'tomorrow', 'no-date', 'future']
        )

    def test_defaults_endpoint(self):
        response = self.client.get('/api/tasks/defaults/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['created']['points'], 500)
        self.assertEqual(response.data['collected']['complexity'], 3)

    def test_api_info_endpoint(self):
        """GET /api/ should return API information."""
        response = self.client.get('/api/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('name', response.data)
        self.assertIn('endpoints', response.data)
        self.assertIn(ErrorCode.ERR_INVALID_MOVE.value, response.data['error_codes'])
