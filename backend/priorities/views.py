"""
API Views for the task priority engine.

This module exposes the engine's four operations over REST: ordering a task
list, classifying tasks, computing points, and resolving a drag-and-drop move
to a new position. The views hold no rules of their own; every decision is
delegated to the engine modules.
"""

import logging

from django.utils import timezone
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle

from .dates import create_date_context, date_context_for, normalize_date
from .errors import ErrorCode, InvalidMove, MalformedDate
from .ordering import CATEGORY_PRIORITY, TaskPrioritizer
from .points import (
    compute_points,
    get_default_task_values,
    get_new_default_task_values,
    get_priority_level,
    validate_tasks,
)
from .positions import calculate_reordered_position, is_gap_exhausted, move_neighbours, rebalance_positions
from .serializers import OrderRequestSerializer, PointsInputSerializer, ReorderInputSerializer


logger = logging.getLogger(__name__)

DATE_FIELDS = ('planned_date', 'due_date')


# ============================================
# RATE LIMITING CLASSES
# ============================================

class OrderRateThrottle(AnonRateThrottle):
    """Rate limit for the ordering endpoint."""
    scope = 'order'


class ReorderRateThrottle(AnonRateThrottle):
    """Rate limit for the reorder and points endpoints."""
    scope = 'reorder'


def _date_warnings(tasks):
    """Describe every unparseable date; such tasks are ordered as undated."""
    warnings = []
    for task in tasks:
        for field in DATE_FIELDS:
            value = task.get(field)
            if not value:
                continue
            try:
                normalize_date(value)
            except MalformedDate as exc:
                warnings.append({**exc.to_dict(), 'field': field, 'task_id': task.get('id')})
    return warnings


# ============================================
# API ENDPOINTS
# ============================================

@extend_schema(
    summary="Order tasks for display",
    description="""
    Classify each task into a day-relative category and return the list in
    display order: collected, overdue, today, tomorrow, no date, future.
    Within a category tasks are ordered by points (overdue tasks first by
    how long they have been overdue).
    """,
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'tasks': {'type': 'array', 'items': {'type': 'object'}},
                'today': {'type': 'string', 'format': 'date'},
                'group': {'type': 'boolean'},
            },
            'required': ['tasks']
        }
    },
    responses={200: OpenApiTypes.OBJECT},
    tags=['Ordering']
)
@api_view(['POST'])
@throttle_classes([OrderRateThrottle])
def order_tasks(request: Request) -> Response:
    """
    Return tasks sorted for display, annotated with their category.

    POST /api/tasks/order/

    Request Body:
    {
        "tasks": [...],
        "today": "2025-06-15",     // Optional: fix the reference day
        "group": false             // Optional: also return category buckets
    }
    """
    if not isinstance(request.data, dict):
        return Response(
            {
                'success': False,
                'error_code': ErrorCode.ERR_MISSING_FIELD.value,
                'message': 'Request body must be an object with a "tasks" list.'
            },
            status=status.HTTP_400_BAD_REQUEST
        )

    if not request.data.get('tasks'):
        return Response(
            {
                'success': False,
                'error_code': ErrorCode.ERR_EMPTY_TASKS.value,
                'message': 'No tasks provided. Please submit at least one task.'
            },
            status=status.HTTP_400_BAD_REQUEST
        )

    serializer = OrderRequestSerializer(data=request.data)
    if not serializer.is_valid():
        logger.info("Rejected ordering request: %s", serializer.errors)
        return Response(
            {
                'success': False,
                'error_code': ErrorCode.ERR_MISSING_FIELD.value,
                'errors': serializer.errors,
                'message': 'Invalid input data. Please check your tasks format.'
            },
            status=status.HTTP_400_BAD_REQUEST
        )

    validated_data = serializer.validated_data
    tasks = validated_data['tasks']

    errors = validate_tasks(tasks)
    if errors:
        logger.info("Rejected ordering request with %d invalid field(s)", len(errors))
        out_of_range = any(e.code == ErrorCode.ERR_OUT_OF_RANGE for e in errors)
        error_code = ErrorCode.ERR_OUT_OF_RANGE if out_of_range else ErrorCode.ERR_MISSING_FIELD
        return Response(
            {
                'success': False,
                'error_code': error_code.value,
                'errors': [e.to_dict() for e in errors],
                'message': 'Importance and complexity must be valid integers.'
            },
            status=status.HTTP_400_BAD_REQUEST
        )

    # Points are always derived, whatever the client sent
    tasks = [
        {**task, 'points': compute_points(task['importance'], task['complexity'])}
        for task in tasks
    ]

    today = validated_data.get('today')
    if today:
        context = date_context_for(today)
    else:
        context = create_date_context(timezone.localtime())

    prioritizer = TaskPrioritizer(context)
    ordered = prioritizer.order(tasks)
    result_tasks = [{**task, **prioritizer.describe(task)} for task in ordered]

    category_counts = {category.value: 0 for category in CATEGORY_PRIORITY}
    for task in result_tasks:
        category_counts[task['category']] += 1

    response_data = {
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'count': len(result_tasks),
        'date_context': context.to_dict(),
        'tasks': result_tasks,
        'warnings': _date_warnings(tasks),
        'summary': {
            'total_tasks': len(result_tasks),
            'categories': category_counts
        }
    }

    if validated_data.get('group'):
        response_data['groups'] = [
            {
                'category': category.value,
                'rank': CATEGORY_PRIORITY[category],
                'task_ids': [task.get('id') for task in members]
            }
            for category, members in prioritizer.group_by_category(tasks).items()
        ]

    return Response(response_data)


@extend_schema(
    summary="Compute task points",
    description="Validate an importance/complexity pair and return the derived score.",
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'importance': {'type': 'integer', 'minimum': 0, 'maximum': 50},
                'complexity': {'type': 'integer', 'minimum': 1, 'maximum': 9},
            },
            'required': ['importance', 'complexity']
        }
    },
    responses={200: OpenApiTypes.OBJECT},
    tags=['Scoring']
)
@api_view(['POST'])
@throttle_classes([ReorderRateThrottle])
def compute_task_points(request: Request) -> Response:
    """
    Compute points for an importance/complexity pair.

    POST /api/tasks/points/
    """
    serializer = PointsInputSerializer(data=request.data)
    if not serializer.is_valid():
        logger.info("Rejected points request: %s", serializer.errors)
        return Response(
            {
                'success': False,
                'error_code': ErrorCode.ERR_OUT_OF_RANGE.value,
                'errors': serializer.errors,
                'message': 'Importance must be 0-50 and complexity 1-9 (integers).'
            },
            status=status.HTTP_400_BAD_REQUEST
        )

    importance = serializer.validated_data['importance']
    complexity = serializer.validated_data['complexity']
    points = compute_points(importance, complexity)

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'importance': importance,
        'complexity': complexity,
        'points': points,
        'priority_level': get_priority_level(points)
    })


@extend_schema(
    summary="Resolve a drag-and-drop move",
    description="""
    Given a sibling group in display order and a move from one index to
    another, return the single new position to store for the moved task.
    """,
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'siblings': {'type': 'array', 'items': {'type': 'object'}},
                'old_index': {'type': 'integer'},
                'new_index': {'type': 'integer'},
                'rebalance': {'type': 'boolean'},
            },
            'required': ['siblings', 'old_index', 'new_index']
        }
    },
    responses={200: OpenApiTypes.OBJECT},
    tags=['Ordering']
)
@api_view(['POST'])
@throttle_classes([ReorderRateThrottle])
def reorder_task(request: Request) -> Response:
    """
    Compute the new position of a dragged task.

    POST /api/tasks/reorder/

    Request Body:
    {
        "siblings": [{"id": 1, "position": 10000}, ...],
        "old_index": 3,
        "new_index": 0,
        "rebalance": false         // Optional: also return fresh positions
    }
    """
    serializer = ReorderInputSerializer(data=request.data)
    if not serializer.is_valid():
        logger.info("Rejected reorder request: %s", serializer.errors)
        return Response(
            {
                'success': False,
                'error_code': ErrorCode.ERR_MISSING_FIELD.value,
                'errors': serializer.errors,
                'message': 'Invalid reorder request.'
            },
            status=status.HTTP_400_BAD_REQUEST
        )

    siblings = serializer.validated_data['siblings']
    old_index = serializer.validated_data['old_index']
    new_index = serializer.validated_data['new_index']

    try:
        position = calculate_reordered_position(siblings, old_index, new_index)
    except InvalidMove as exc:
        return Response(
            {'success': False, **exc.to_dict()},
            status=status.HTTP_400_BAD_REQUEST
        )

    gap_exhausted = False
    if old_index != new_index:
        above, below = move_neighbours(siblings, old_index, new_index)
        gap_exhausted = above is not None and below is not None and is_gap_exhausted(above, below)

    response_data = {
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'id': siblings[old_index].get('id'),
        'position': position,
        'gap_exhausted': gap_exhausted
    }

    if serializer.validated_data.get('rebalance'):
        moved = siblings[old_index]
        new_order = [s for i, s in enumerate(siblings) if i != old_index]
        new_order.insert(new_index, moved)
        response_data['rebalanced'] = [
            {'id': sibling.get('id'), 'position': new_position}
            for sibling, new_position in rebalance_positions(new_order)
        ]

    return Response(response_data)


@extend_schema(
    summary="Get task categories",
    description="Return the display categories and their ranks.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Info']
)
@api_view(['GET'])
def get_categories(request: Request) -> Response:
    """
    Return categories in display order.

    GET /api/tasks/categories/
    """
    descriptions = {
        'collected': 'Untriaged tasks: default ratings and no date',
        'overdue': 'Effective date before today',
        'today': 'Effective date is today',
        'tomorrow': 'Effective date is tomorrow',
        'no-date': 'Triaged tasks without an effective date',
        'future': 'Effective date after tomorrow',
    }
    return Response({
        'success': True,
        'categories': [
            {
                'category': category.value,
                'rank': rank,
                'description': descriptions[category.value]
            }
            for category, rank in sorted(CATEGORY_PRIORITY.items(), key=lambda item: item[1])
        ]
    })


@extend_schema(
    summary="Get default task values",
    description="Return the ratings given to new tasks.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Info']
)
@api_view(['GET'])
def get_defaults(request: Request) -> Response:
    """
    Return defaults for explicitly created and for collected tasks.

    GET /api/tasks/defaults/
    """
    return Response({
        'success': True,
        'created': get_default_task_values(),
        'collected': get_new_default_task_values()
    })


@extend_schema(
    summary="API information",
    description="Get API information and available endpoints.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Info']
)
@api_view(['GET'])
def api_info(request: Request) -> Response:
    """
    Return API information and available endpoints.

    GET /api/
    """
    return Response({
        'name': 'Task Priority Engine API',
        'version': '1.0.0',
        'documentation': '/api/docs/',
        'endpoints': {
            'POST /api/tasks/order/': 'Order and classify tasks for display',
            'POST /api/tasks/points/': 'Compute points from importance and complexity',
            'POST /api/tasks/reorder/': 'Resolve a drag-and-drop move to a position',
            'GET /api/tasks/categories/': 'List display categories',
            'GET /api/tasks/defaults/': 'Default ratings for new tasks',
            'GET /api/docs/': 'Interactive API documentation',
            'GET /api/schema/': 'OpenAPI schema',
            'GET /api/': 'This info endpoint'
        },
        'error_codes': {
            code.value: code.name for code in ErrorCode
        }
    })
