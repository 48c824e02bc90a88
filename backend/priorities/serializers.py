"""
Serializers for the priority engine API.

These validate request bodies before they reach the engine. Importance and
complexity are checked with the engine's strict validators so that a request
is rejected before any points are computed.
"""

from rest_framework import serializers

from .points import (
    MAX_COMPLEXITY,
    MAX_IMPORTANCE,
    MIN_COMPLEXITY,
    MIN_IMPORTANCE,
    validate_complexity,
    validate_importance,
)


class PointsInputSerializer(serializers.Serializer):
    """
    Serializer for a points calculation request.

    Uses raw fields so that strings, booleans and fractional numbers reach the
    strict validators instead of being coerced.
    """

    importance = serializers.JSONField()
    complexity = serializers.JSONField()

    def validate_importance(self, value):
        if not validate_importance(value):
            raise serializers.ValidationError(
                f"Importance must be an integer between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}"
            )
        return int(value)

    def validate_complexity(self, value):
        if not validate_complexity(value):
            raise serializers.ValidationError(
                f"Complexity must be an integer between {MIN_COMPLEXITY} and {MAX_COMPLEXITY}"
            )
        return int(value)


class OrderRequestSerializer(serializers.Serializer):
    """
    Serializer for an ordering request.

    Task payloads are kept as plain objects; their ratings are checked by
    ``validate_tasks`` and their dates are read leniently by the engine.
    """

    tasks = serializers.ListField(
        child=serializers.DictField(),
        min_length=1,
        error_messages={
            'min_length': 'At least one task is required for ordering'
        }
    )
    today = serializers.DateField(required=False, allow_null=True)
    group = serializers.BooleanField(required=False, default=False)


class SiblingSerializer(serializers.Serializer):
    """A sibling as seen by the reorder endpoint."""

    id = serializers.JSONField(required=False, allow_null=True)
    position = serializers.FloatField()


class ReorderInputSerializer(serializers.Serializer):
    """
    Serializer for a drag-and-drop reorder request.

    ``siblings`` must be in display order (descending position) and include
    the dragged item at ``old_index``.
    """

    siblings = SiblingSerializer(many=True, allow_empty=False)
    old_index = serializers.IntegerField()
    new_index = serializers.IntegerField()
    rebalance = serializers.BooleanField(required=False, default=False)
