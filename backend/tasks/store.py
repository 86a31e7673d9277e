"""
Persistence layer for tasks.

``TaskStore`` wraps the Django ORM with the CRUD operations and the fixed
set of query shapes the service needs. It is the only module that talks
to the database; every ``DatabaseError`` leaves it as ``StoreError``.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional

from django.db import DatabaseError
from django.db.models import Case, F, IntegerField, Q, QuerySet, Value, When
from django.utils import timezone

from .errors import StoreError, TaskNotFound
from .models import PRIORITY_RANK, Task

logger = logging.getLogger(__name__)


@contextmanager
def _db_errors(action: str) -> Iterator[None]:
    try:
        yield
    except DatabaseError as exc:
        logger.error("Database error while %s: %s", action, exc)
        raise StoreError(f"Error while {action}: {exc}") from exc


def _next_timestamp(previous: Optional[datetime] = None) -> datetime:
    """Current time, forced strictly after ``previous``."""
    now = timezone.now()
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


class TaskStore:
    """Durable CRUD plus canned parameterized reads over the ``tasks`` table."""

    def __init__(self, queryset: Optional[QuerySet] = None):
        self._queryset = queryset if queryset is not None else Task.objects.all()

    @property
    def tasks(self) -> QuerySet:
        return self._queryset.all()

    def _fetch(self, queryset: QuerySet, action: str) -> List[Task]:
        with _db_errors(action):
            return list(queryset)

    # ==================== CRUD ====================

    def create(self, task: Task) -> Task:
        """Assign an id and both timestamps, then persist ``task``."""
        task.pk = None
        now = _next_timestamp()
        task.created_at = now
        task.updated_at = now
        with _db_errors("creating task"):
            task.save(force_insert=True)
        return task

    def get(self, task_id: int) -> Optional[Task]:
        with _db_errors(f"loading task {task_id}"):
            return self.tasks.filter(pk=task_id).first()

    def update(self, task: Task) -> Task:
        """
        Persist the full field set of an existing task.

        ``created_at`` is kept from the stored row and ``updated_at`` is
        moved strictly forward.

        Raises:
            TaskNotFound: if no row has ``task.pk``.
        """
        with _db_errors(f"updating task {task.pk}"):
            current = (
                self.tasks.filter(pk=task.pk)
                .values('created_at', 'updated_at')
                .first()
            ) if task.pk is not None else None
            if current is None:
                raise TaskNotFound(task.pk)
            task.created_at = current['created_at']
            task.updated_at = _next_timestamp(current['updated_at'])
            task.save(force_update=True)
        return task

    def delete(self, task_id: int) -> None:
        with _db_errors(f"deleting task {task_id}"):
            deleted, _ = self.tasks.filter(pk=task_id).delete()
        if not deleted:
            raise TaskNotFound(task_id)

    def delete_all(self) -> int:
        with _db_errors("deleting all tasks"):
            deleted, _ = self.tasks.delete()
        return deleted

    # ==================== QUERIES ====================

    def list(self) -> List[Task]:
        return self._fetch(self.tasks.order_by('id'), "listing tasks")

    def list_by_completed(self, completed: bool) -> List[Task]:
        return self._fetch(
            self.tasks.filter(completed=completed).order_by('id'),
            "listing tasks by status"
        )

    def list_by_project(self, project: str) -> List[Task]:
        """
        Tasks whose project equals ``project``, ignoring case.

        Case is folded in Python: SQLite's LIKE and LOWER only fold ASCII.
        """
        wanted = project.casefold()
        tasks = self._fetch(
            self.tasks.filter(project__isnull=False).order_by('id'),
            "listing tasks by project"
        )
        return [task for task in tasks if task.project.casefold() == wanted]

    def search_by_keyword(self, keyword: str) -> List[Task]:
        """Case-insensitive substring match on title or description."""
        tasks = self._fetch(self.tasks.order_by('id'), "searching tasks")
        return _filter_keyword(tasks, keyword)

    def list_overdue(self, today: date) -> List[Task]:
        return self._fetch(
            self.tasks.filter(_overdue_q(today)).order_by('id'),
            "listing overdue tasks"
        )

    def list_due_on(self, day: date) -> List[Task]:
        return self._fetch(
            self.tasks.filter(due_date=day).order_by('id'),
            "listing tasks due on a date"
        )

    def list_due_between(self, start: date, end: date) -> List[Task]:
        """Pending tasks due in the inclusive range ``start``..``end``."""
        return self._fetch(
            self.tasks.filter(due_date__range=(start, end), completed=False).order_by('id'),
            "listing tasks due in a range"
        )

    def find_by_criteria(
        self,
        project: Optional[str] = None,
        completed: Optional[bool] = None,
        keyword: Optional[str] = None
    ) -> List[Task]:
        """
        AND-combine the given criteria; ``None`` means "any".

        Args:
            project: Exact project name
            completed: Completion flag
            keyword: Substring of title or description (case-insensitive)
        """
        queryset = self.tasks
        if project is not None:
            queryset = queryset.filter(project=project)
        if completed is not None:
            queryset = queryset.filter(completed=completed)
        tasks = self._fetch(queryset.order_by('id'), "listing tasks by criteria")
        if keyword is not None:
            tasks = _filter_keyword(tasks, keyword)
        return tasks

    # ==================== ORDERED LISTINGS ====================

    def list_by_due_date(self, ascending: bool = True) -> List[Task]:
        """Tasks by due date, undated tasks last, ties broken by creation time."""
        if ascending:
            ordering = [F('due_date').asc(nulls_last=True), 'created_at', 'id']
        else:
            ordering = [F('due_date').desc(nulls_last=True), '-created_at', '-id']
        return self._fetch(self.tasks.order_by(*ordering), "sorting tasks by due date")

    def list_by_project_name(self) -> List[Task]:
        return self._fetch(
            self.tasks.order_by('project', F('due_date').asc(nulls_last=True), 'id'),
            "sorting tasks by project"
        )

    def list_by_priority(self) -> List[Task]:
        """HIGH before MEDIUM before LOW, then by due date."""
        rank = Case(
            *[When(priority=value, then=Value(weight)) for value, weight in PRIORITY_RANK.items()],
            default=Value(0),
            output_field=IntegerField()
        )
        return self._fetch(
            self.tasks.annotate(priority_rank=rank).order_by(
                '-priority_rank', F('due_date').asc(nulls_last=True), 'id'
            ),
            "sorting tasks by priority"
        )

    def list_by_created(self) -> List[Task]:
        """Newest first."""
        return self._fetch(
            self.tasks.order_by('-created_at', '-id'),
            "sorting tasks by creation time"
        )

    # ==================== AGGREGATES ====================

    def count_all(self) -> int:
        with _db_errors("counting tasks"):
            return self.tasks.count()

    def count_by_completed(self, completed: bool) -> int:
        with _db_errors("counting tasks by status"):
            return self.tasks.filter(completed=completed).count()

    def count_overdue(self, today: date) -> int:
        with _db_errors("counting overdue tasks"):
            return self.tasks.filter(_overdue_q(today)).count()

    def distinct_projects(self) -> List[str]:
        """Non-empty project names, alphabetical, without duplicates."""
        queryset = (
            self.tasks.exclude(project__isnull=True)
            .exclude(project='')
            .order_by('project')
            .values_list('project', flat=True)
            .distinct()
        )
        return self._fetch(queryset, "listing projects")


def _filter_keyword(tasks: List[Task], keyword: str) -> List[Task]:
    needle = keyword.casefold()
    return [
        task for task in tasks
        if needle in task.title.casefold() or needle in (task.description or '').casefold()
    ]


def _overdue_q(today: date) -> Q:
    return Q(due_date__lt=today, completed=False)
