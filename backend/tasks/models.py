"""
Task Model for the Todolist application.

This module defines the Task table, the priority choices and the
display lookup used by the templates. Timestamps are assigned by
``tasks.store.TaskStore``, never by model hooks.
"""

from datetime import date
from typing import Optional

from django.core.validators import MinLengthValidator
from django.db import models
from django.utils import timezone


class Priority(models.TextChoices):
    """Priority of a task, ordered LOW < MEDIUM < HIGH."""
    LOW = 'LOW', 'Low'
    MEDIUM = 'MEDIUM', 'Medium'
    HIGH = 'HIGH', 'High'


# Presentation metadata: (label, css severity class)
PRIORITY_DISPLAY = {
    Priority.LOW: ('Low', 'success'),
    Priority.MEDIUM: ('Medium', 'warning'),
    Priority.HIGH: ('High', 'danger'),
}

# Sort rank used for "priority descending" orderings
PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
}

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
PROJECT_MAX_LENGTH = 100


class Task(models.Model):
    """
    A single to-do item.

    Attributes:
        title: Short description of the work (1-200 characters)
        description: Optional longer notes (up to 1000 characters)
        due_date: Optional calendar date the task is due
        project: Optional free-form grouping label
        completed: Whether the task is done
        priority: LOW, MEDIUM or HIGH
        created_at: Set once when the task is stored
        updated_at: Refreshed on every mutation
    """

    title = models.CharField(
        max_length=TITLE_MAX_LENGTH,
        validators=[MinLengthValidator(1)],
        help_text="Task title"
    )
    description = models.TextField(
        max_length=DESCRIPTION_MAX_LENGTH,
        null=True,
        blank=True,
        help_text="Task description (optional)"
    )
    due_date = models.DateField(
        null=True,
        blank=True,
        help_text="Task due date (optional)"
    )
    project = models.CharField(
        max_length=PROJECT_MAX_LENGTH,
        null=True,
        blank=True,
        help_text="Project name used to group tasks (optional)"
    )
    completed = models.BooleanField(default=False)
    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM
    )
    created_at = models.DateTimeField(editable=False)
    updated_at = models.DateTimeField(editable=False)

    class Meta:
        db_table = 'tasks'
        ordering = ['id']

    def __str__(self):
        return f"{self.title} ({'done' if self.completed else 'pending'})"

    def is_overdue(self, today: Optional[date] = None) -> bool:
        """A task is overdue when its due date has passed and it is not completed."""
        if self.due_date is None or self.completed:
            return False
        if today is None:
            today = timezone.localdate()
        return self.due_date < today

    @property
    def status_text(self) -> str:
        return 'Completed' if self.completed else 'Pending'

    def status_class(self, today: Optional[date] = None) -> str:
        """Badge class: success when completed, danger when overdue on ``today``."""
        if self.completed:
            return 'success'
        if self.is_overdue(today):
            return 'danger'
        return 'primary'

    @property
    def priority_label(self) -> str:
        return PRIORITY_DISPLAY[Priority(self.priority)][0]

    @property
    def priority_class(self) -> str:
        return PRIORITY_DISPLAY[Priority(self.priority)][1]
