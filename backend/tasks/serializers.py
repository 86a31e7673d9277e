"""
Serializers and drafts for the Task model.

This module handles validation of incoming task data (form posts, API
bodies and import documents) and serialization of stored tasks for the
JSON API.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from rest_framework import serializers

from .errors import TaskValidationError
from .models import (
    DESCRIPTION_MAX_LENGTH,
    PROJECT_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Priority,
    Task,
)


@dataclass
class TaskDraft:
    """
    Unsaved task input.

    ``id`` is absent when creating and present when pre-filling an edit
    form; the service never uses it to choose which row to write.
    """
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    project: Optional[str] = None
    priority: str = Priority.MEDIUM
    completed: bool = False
    id: Optional[int] = None

    @classmethod
    def from_task(cls, task: Task) -> 'TaskDraft':
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            due_date=task.due_date,
            project=task.project,
            priority=task.priority,
            completed=task.completed,
        )

    def to_task(self) -> Task:
        """Build a new, unsaved Task. The draft's id is dropped."""
        task = Task()
        self.apply_to(task)
        return task

    def apply_to(self, task: Task) -> Task:
        """Overwrite every mutable field of ``task`` with the draft's values."""
        task.title = self.title
        task.description = self.description
        task.due_date = self.due_date
        task.project = self.project
        task.priority = self.priority
        task.completed = self.completed
        return task

    def to_initial(self) -> Dict:
        """Values for re-displaying the draft in a form."""
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description or '',
            'due_date': self.due_date.isoformat() if self.due_date else '',
            'project': self.project or '',
            'priority': self.priority,
            'completed': self.completed,
        }


class TaskDraftSerializer(serializers.Serializer):
    """
    Serializer for validating submitted task drafts.

    Used for HTML form posts, JSON API bodies and each element of an
    import document.
    """

    id = serializers.IntegerField(required=False, allow_null=True)
    title = serializers.CharField(max_length=TITLE_MAX_LENGTH, required=True)
    description = serializers.CharField(
        max_length=DESCRIPTION_MAX_LENGTH,
        required=False,
        allow_blank=True,
        allow_null=True
    )
    due_date = serializers.DateField(required=False, allow_null=True)
    project = serializers.CharField(
        max_length=PROJECT_MAX_LENGTH,
        required=False,
        allow_blank=True,
        allow_null=True
    )
    priority = serializers.ChoiceField(
        choices=Priority.choices,
        default=Priority.MEDIUM,
        required=False
    )
    completed = serializers.BooleanField(required=False, default=False)

    def validate_title(self, value):
        """Ensure title is not empty or just whitespace."""
        if not value or not value.strip():
            raise serializers.ValidationError("Title cannot be empty")
        return value.strip()

    def to_draft(self) -> TaskDraft:
        data = self.validated_data
        return TaskDraft(
            id=data.get('id'),
            title=data['title'],
            description=data.get('description') or None,
            due_date=data.get('due_date'),
            project=(data.get('project') or '').strip() or None,
            priority=data.get('priority') or Priority.MEDIUM,
            completed=data.get('completed', False),
        )


def _flatten_errors(errors: Any) -> Dict[str, List[str]]:
    if isinstance(errors, list):
        return {'non_field_errors': [str(e) for e in errors]}
    return {
        field: [str(e) for e in messages] if isinstance(messages, list) else [str(messages)]
        for field, messages in errors.items()
    }


def validate_draft(data: Any) -> Tuple[Optional[TaskDraft], Dict[str, List[str]]]:
    """
    Validate boundary input.

    Returns:
        (draft, {}) when valid, (None, field_errors) otherwise.
    """
    serializer = TaskDraftSerializer(data=data)
    if not serializer.is_valid():
        return None, _flatten_errors(serializer.errors)
    return serializer.to_draft(), {}


def parse_draft(data: Any) -> TaskDraft:
    """Like ``validate_draft`` but raises ``TaskValidationError``."""
    draft, errors = validate_draft(data)
    if errors:
        raise TaskValidationError(errors, data=data)
    return draft


class TaskSerializer(serializers.ModelSerializer):
    """Serializer for stored tasks returned by the JSON API."""

    is_overdue = serializers.SerializerMethodField()
    priority_label = serializers.CharField(read_only=True)
    status_text = serializers.CharField(read_only=True)

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'description', 'due_date', 'project',
            'completed', 'priority', 'priority_label', 'status_text',
            'is_overdue', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'title', 'description', 'due_date', 'project',
            'completed', 'priority', 'created_at', 'updated_at',
        ]

    def get_is_overdue(self, obj: Task) -> bool:
        today = self.context.get('today')
        return obj.is_overdue(today)


class TaskStatsSerializer(serializers.Serializer):
    """Aggregate task counts."""

    total = serializers.IntegerField()
    completed = serializers.IntegerField()
    pending = serializers.IntegerField()
    overdue = serializers.IntegerField()


class BulkResultSerializer(serializers.Serializer):
    """Result of a bulk or import operation."""

    success = serializers.BooleanField()
    affected = serializers.IntegerField()
    message = serializers.CharField()
