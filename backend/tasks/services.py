"""
Task Query Service.

Translates the filter/sort/search requests and the mutations coming from
the HTML views and the JSON API into ``TaskStore`` calls, and owns the
domain rules: overdue, completion toggling, bulk state changes and JSON
export/import.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from django.utils import timezone

from .errors import StoreError, TaskImportError, TaskNotFound
from .models import Task
from .serializers import TaskDraft, validate_draft
from .store import TaskStore

logger = logging.getLogger(__name__)


SORT_OPTIONS = ('date-asc', 'date-desc', 'project', 'priority', 'created')
FILTER_OPTIONS = ('completed', 'pending', 'overdue')

EXPORT_FILENAME = 'todolist_tasks_export.json'
EXPORT_TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S'

# Import keys that never reach the draft: ids and timestamps are always fresh
IMPORT_IGNORED_KEYS = ('id', 'createdAt', 'updatedAt', 'created_at', 'updated_at')
IMPORT_KEY_ALIASES = {'dueDate': 'due_date'}


@dataclass
class TaskStats:
    """Aggregate counts shown on the dashboard and by the stats endpoint."""
    total: int
    completed: int
    pending: int
    overdue: int

    def to_dict(self) -> Dict:
        return asdict(self)


def task_to_export_dict(task: Task) -> Dict:
    """Convert a Task to the dictionary written by ``export_json``."""
    return {
        'id': task.id,
        'title': task.title,
        'description': task.description,
        'dueDate': task.due_date.isoformat() if task.due_date else None,
        'project': task.project,
        'completed': task.completed,
        'priority': task.priority,
        'createdAt': _format_timestamp(task.created_at),
        'updatedAt': _format_timestamp(task.updated_at),
    }


def _format_timestamp(value) -> Optional[str]:
    if value is None:
        return None
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime(EXPORT_TIMESTAMP_FORMAT)


def _import_fields(item: Dict) -> Dict:
    fields = {}
    for key, value in item.items():
        if key in IMPORT_IGNORED_KEYS:
            continue
        fields[IMPORT_KEY_ALIASES.get(key, key)] = value
    return fields


class TaskQueryService:
    """
    Domain operations over a ``TaskStore``.

    Args:
        store: Persistence backend (defaults to the ORM-backed store)
        today: Callable returning the current date, used for overdue rules
    """

    def __init__(
        self,
        store: Optional[TaskStore] = None,
        today: Callable[[], date] = timezone.localdate
    ):
        self.store = store or TaskStore()
        self._today = today

    def today(self) -> date:
        return self._today()

    # ==================== LISTING ====================

    def list_for_view(
        self,
        sort: Optional[str] = None,
        filter_by: Optional[str] = None,
        project: Optional[str] = None,
        search: Optional[str] = None
    ) -> List[Task]:
        """
        Select exactly one listing for the dashboard.

        The first matching rule wins: a non-blank search, then a status
        filter, then a project, then a sort order, else every task in
        store order. Filters and sorts do not combine.
        """
        logger.info(
            "Listing tasks with sort=%s filter=%s project=%s search=%s",
            sort, filter_by, project, search
        )
        if search and search.strip():
            return self.search(search.strip())
        if filter_by == 'completed':
            return self.list_by_status(True)
        if filter_by == 'pending':
            return self.list_by_status(False)
        if filter_by == 'overdue':
            return self.list_overdue()
        if project and project.strip():
            return self.list_by_project(project.strip())
        if sort == 'date-asc':
            return self.list_sorted_by_date(ascending=True)
        if sort == 'date-desc':
            return self.list_sorted_by_date(ascending=False)
        if sort == 'project':
            return self.list_sorted_by_project()
        if sort == 'priority':
            return self.list_sorted_by_priority()
        if sort == 'created':
            return self.list_sorted_by_created()
        return self.list_all()

    def list_all(self) -> List[Task]:
        return self.store.list()

    def list_by_status(self, completed: bool) -> List[Task]:
        return self.store.list_by_completed(completed)

    def list_by_project(self, project: str) -> List[Task]:
        return self.store.list_by_project(project)

    def search(self, keyword: str) -> List[Task]:
        logger.info("Searching tasks with keyword: %s", keyword)
        return self.store.search_by_keyword(keyword)

    def list_by_criteria(
        self,
        project: Optional[str] = None,
        completed: Optional[bool] = None,
        keyword: Optional[str] = None
    ) -> List[Task]:
        return self.store.find_by_criteria(project=project, completed=completed, keyword=keyword)

    def list_overdue(self) -> List[Task]:
        return self.store.list_overdue(self.today())

    def list_due_today(self) -> List[Task]:
        return self.store.list_due_on(self.today())

    def list_due_within_days(self, days: int) -> List[Task]:
        today = self.today()
        return self.store.list_due_between(today, today + timedelta(days=days))

    def list_sorted_by_date(self, ascending: bool = True) -> List[Task]:
        return self.store.list_by_due_date(ascending=ascending)

    def list_sorted_by_project(self) -> List[Task]:
        return self.store.list_by_project_name()

    def list_sorted_by_priority(self) -> List[Task]:
        return self.store.list_by_priority()

    def list_sorted_by_created(self) -> List[Task]:
        return self.store.list_by_created()

    def projects(self) -> List[str]:
        return self.store.distinct_projects()

    def stats(self) -> TaskStats:
        today = self.today()
        return TaskStats(
            total=self.store.count_all(),
            completed=self.store.count_by_completed(True),
            pending=self.store.count_by_completed(False),
            overdue=self.store.count_overdue(today),
        )

    # ==================== SINGLE TASK ====================

    def get(self, task_id: int) -> Optional[Task]:
        return self.store.get(task_id)

    def get_or_404(self, task_id: int) -> Task:
        task = self.store.get(task_id)
        if task is None:
            logger.warning("Task not found with ID: %s", task_id)
            raise TaskNotFound(task_id)
        return task

    def create(self, draft: TaskDraft) -> Task:
        logger.info("Saving new task: %s", draft.title)
        task = self.store.create(draft.to_task())
        logger.info("Task saved with ID: %s", task.id)
        return task

    def update(self, task_id: int, draft: TaskDraft) -> Task:
        logger.info("Updating task with ID: %s", task_id)
        task = self.get_or_404(task_id)
        draft.apply_to(task)
        return self.store.update(task)

    def toggle_completion(self, task_id: int) -> Task:
        task = self.get_or_404(task_id)
        task.completed = not task.completed
        task = self.store.update(task)
        logger.info("Task completion toggled: %s -> %s", task_id, task.completed)
        return task

    def mark_completed(self, task_id: int) -> Task:
        return self._set_completed(task_id, True)

    def mark_incomplete(self, task_id: int) -> Task:
        return self._set_completed(task_id, False)

    def _set_completed(self, task_id: int, completed: bool) -> Task:
        logger.info("Marking task %s as %s", task_id, 'completed' if completed else 'pending')
        task = self.get_or_404(task_id)
        task.completed = completed
        return self.store.update(task)

    def delete(self, task_id: int) -> None:
        logger.info("Deleting task with ID: %s", task_id)
        self.store.delete(task_id)

    # ==================== BULK ====================

    def delete_completed(self) -> int:
        """Delete every completed task and return how many were removed."""
        completed = self.store.list_by_completed(True)
        deleted = 0
        for task in completed:
            try:
                self.store.delete(task.id)
            except StoreError as exc:
                raise StoreError(
                    f"Deleted {deleted} of {len(completed)} completed tasks before failing: {exc.message}",
                    processed=deleted
                ) from exc
            deleted += 1
        logger.info("Deleted %d completed tasks", deleted)
        return deleted

    def delete_all(self) -> int:
        deleted = self.store.delete_all()
        logger.info("Deleted all %d tasks", deleted)
        return deleted

    def mark_all_completed(self) -> List[Task]:
        return self._mark_all(True)

    def mark_all_incomplete(self) -> List[Task]:
        return self._mark_all(False)

    def _mark_all(self, completed: bool) -> List[Task]:
        tasks = self.store.list()
        updated = []
        for task in tasks:
            task.completed = completed
            try:
                updated.append(self.store.update(task))
            except StoreError as exc:
                raise StoreError(
                    f"Updated {len(updated)} of {len(tasks)} tasks before failing: {exc.message}",
                    processed=len(updated)
                ) from exc
        logger.info(
            "Marked %d tasks as %s", len(updated), 'completed' if completed else 'pending'
        )
        return updated

    # ==================== EXPORT / IMPORT ====================

    def export_json(self) -> str:
        """Serialize every task to a JSON array."""
        logger.info("Exporting all tasks to JSON")
        tasks = self.store.list()
        return json.dumps([task_to_export_dict(t) for t in tasks], indent=2)

    def import_json(self, text: Union[str, bytes]) -> List[Task]:
        """
        Create new tasks from a JSON array of task objects.

        Supplied ids and timestamps are ignored, so an import never
        overwrites an existing task. The whole document is validated
        before the first task is written.

        Raises:
            TaskImportError: malformed JSON, a non-array document or an
                element that is not a valid task.
        """
        logger.info("Importing tasks from JSON")
        try:
            payload = json.loads(text)
        except (TypeError, ValueError, RecursionError) as exc:
            logger.error("Error importing tasks from JSON: %s", exc)
            raise TaskImportError(f"Malformed JSON: {exc}") from exc

        if not isinstance(payload, list):
            raise TaskImportError("Expected a JSON array of tasks")

        drafts = []
        errors: Dict[str, Any] = {}
        for index, item in enumerate(payload):
            if not isinstance(item, dict):
                errors[str(index)] = {'non_field_errors': ['Expected a JSON object']}
                continue
            draft, item_errors = validate_draft(_import_fields(item))
            if item_errors:
                errors[str(index)] = item_errors
            else:
                drafts.append(draft)

        if errors:
            logger.error("Rejected import: %d invalid task(s)", len(errors))
            raise TaskImportError(
                f"{len(errors)} task(s) in the import document are invalid",
                errors=errors
            )

        created = []
        for draft in drafts:
            try:
                created.append(self.store.create(draft.to_task()))
            except StoreError as exc:
                raise StoreError(
                    f"Imported {len(created)} of {len(drafts)} tasks before failing: {exc.message}",
                    processed=len(created)
                ) from exc
        logger.info("Successfully imported %d tasks", len(created))
        return created
