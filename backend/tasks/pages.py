"""
Server-rendered pages for the Todolist application.

Every mutation redirects back to the dashboard with a flash message.
Failures from the service are logged and shown to the user; they never
escape as a server error.
"""

import logging
from typing import Dict, Optional

from django.contrib import messages
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import redirect, render
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .errors import StoreError, TaskError, TaskValidationError
from .models import PRIORITY_DISPLAY, Priority
from .serializers import TaskDraft, parse_draft
from .services import EXPORT_FILENAME, FILTER_OPTIONS, SORT_OPTIONS, TaskQueryService

logger = logging.getLogger(__name__)


def get_service() -> TaskQueryService:
    return TaskQueryService()


def _priority_choices():
    return [
        {'value': p.value, 'label': PRIORITY_DISPLAY[p][0], 'css_class': PRIORITY_DISPLAY[p][1]}
        for p in Priority
    ]


def _dashboard_context(request: HttpRequest, service: TaskQueryService) -> Dict:
    sort = request.GET.get('sort')
    filter_by = request.GET.get('filter')
    project = request.GET.get('project')
    search = request.GET.get('search')

    context = {
        'tasks': [],
        'projects': [],
        'stats': None,
        'priorities': _priority_choices(),
        'sort_options': SORT_OPTIONS,
        'filter_options': FILTER_OPTIONS,
        'current_sort': sort,
        'current_filter': filter_by,
        'current_project': project,
        'search_keyword': search,
        'form_data': {'priority': Priority.MEDIUM.value},
        'form_errors': {},
    }
    try:
        today = service.today()
        tasks = service.list_for_view(
            sort=sort, filter_by=filter_by, project=project, search=search
        )
        for task in tasks:
            task.status_badge = task.status_class(today)
        context['tasks'] = tasks
        context['projects'] = service.projects()
        context['stats'] = service.stats()
    except StoreError as exc:
        logger.error("Error loading dashboard: %s", exc.message)
        messages.error(request, f"Error loading tasks: {exc.message}")
    return context


@require_http_methods(['GET', 'POST'])
def task_index(request: HttpRequest) -> HttpResponse:
    """
    Dashboard listing tasks, and the target of the "add task" form.

    GET /  or  GET /tasks/?sort=&filter=&project=&search=
    POST /tasks/
    """
    service = get_service()
    if request.method == 'POST':
        return _create_task(request, service)
    return render(request, 'tasks/index.html', _dashboard_context(request, service))


def _create_task(request: HttpRequest, service: TaskQueryService) -> HttpResponse:
    try:
        draft = parse_draft(request.POST)
    except TaskValidationError as exc:
        logger.info("Rejected new task: %s", exc.errors)
        messages.error(request, exc.message)
        context = _dashboard_context(request, service)
        context['form_data'] = exc.data
        context['form_errors'] = exc.errors
        return render(request, 'tasks/index.html', context, status=400)

    try:
        task = service.create(draft)
        messages.success(request, f"Task '{task.title}' added successfully!")
    except TaskError as exc:
        logger.error("Error adding task: %s", exc.message)
        messages.error(request, f"Error adding task: {exc.message}")
    return redirect('tasks:index')


@require_POST
def task_toggle(request: HttpRequest, task_id: int) -> HttpResponse:
    try:
        task = get_service().toggle_completion(task_id)
        state = 'completed' if task.completed else 'pending'
        messages.success(request, f"Task '{task.title}' marked as {state}!")
    except TaskError as exc:
        logger.error("Error toggling task completion: %s", exc.message)
        messages.error(request, f"Error updating task: {exc.message}")
    return redirect('tasks:index')


@require_POST
def task_delete(request: HttpRequest, task_id: int) -> HttpResponse:
    service = get_service()
    try:
        task = service.get_or_404(task_id)
        service.delete(task_id)
        messages.success(request, f"Task '{task.title}' deleted successfully!")
    except TaskError as exc:
        logger.error("Error deleting task: %s", exc.message)
        messages.error(request, f"Error deleting task: {exc.message}")
    return redirect('tasks:index')


@require_http_methods(['GET', 'POST'])
def task_edit(request: HttpRequest, task_id: int) -> HttpResponse:
    """
    Edit form for one task.

    GET /tasks/<id>/edit/   pre-filled form
    POST /tasks/<id>/edit/  apply the submitted draft
    """
    service = get_service()
    try:
        task = service.get_or_404(task_id)
    except TaskError as exc:
        messages.error(request, exc.message)
        return redirect('tasks:index')

    if request.method == 'GET':
        return _render_edit(request, service, task_id, TaskDraft.from_task(task).to_initial())

    try:
        draft = parse_draft(request.POST)
    except TaskValidationError as exc:
        messages.error(request, exc.message)
        return _render_edit(request, service, task_id, exc.data, exc.errors, status=400)

    try:
        task = service.update(task_id, draft)
        messages.success(request, f"Task '{task.title}' updated successfully!")
    except TaskError as exc:
        logger.error("Error updating task: %s", exc.message)
        messages.error(request, f"Error updating task: {exc.message}")
    return redirect('tasks:index')


def _render_edit(
    request: HttpRequest,
    service: TaskQueryService,
    task_id: int,
    form_data,
    form_errors: Optional[Dict] = None,
    status: int = 200
) -> HttpResponse:
    try:
        projects = service.projects()
    except StoreError as exc:
        logger.error("Error loading projects: %s", exc.message)
        projects = []
    return render(request, 'tasks/edit_task.html', {
        'task_id': task_id,
        'form_data': form_data,
        'form_errors': form_errors or {},
        'projects': projects,
        'priorities': _priority_choices(),
    }, status=status)


@require_GET
def task_export(request: HttpRequest) -> HttpResponse:
    """Download every task as ``todolist_tasks_export.json``."""
    try:
        payload = get_service().export_json()
    except TaskError as exc:
        logger.error("Error exporting tasks: %s", exc.message)
        return JsonResponse({'error': f"Error exporting tasks: {exc.message}"}, status=500)
    response = HttpResponse(payload, content_type='application/json')
    response['Content-Disposition'] = f'attachment; filename="{EXPORT_FILENAME}"'
    logger.info("Tasks exported successfully")
    return response


@require_POST
def task_import(request: HttpRequest) -> HttpResponse:
    upload = request.FILES.get('file')
    if upload is None or upload.size == 0:
        messages.error(request, "Please select a file to import")
        return redirect('tasks:index')

    logger.info("Importing tasks from file: %s", upload.name)
    try:
        imported = get_service().import_json(upload.read())
        messages.success(request, f"Successfully imported {len(imported)} tasks!")
    except TaskError as exc:
        logger.error("Error importing tasks: %s", exc.message)
        messages.error(request, f"Error importing tasks: {exc.message}")
    return redirect('tasks:index')


@require_POST
def bulk_delete_completed(request: HttpRequest) -> HttpResponse:
    try:
        deleted = get_service().delete_completed()
        messages.success(request, f"Deleted {deleted} completed tasks!")
    except TaskError as exc:
        logger.error("Error deleting completed tasks: %s", exc.message)
        messages.error(request, f"Error deleting completed tasks: {exc.message}")
    return redirect('tasks:index')


@require_POST
def bulk_mark_all_completed(request: HttpRequest) -> HttpResponse:
    try:
        updated = get_service().mark_all_completed()
        messages.success(request, f"Marked {len(updated)} tasks as completed!")
    except TaskError as exc:
        logger.error("Error marking all tasks as completed: %s", exc.message)
        messages.error(request, f"Error marking all tasks as completed: {exc.message}")
    return redirect('tasks:index')


@require_POST
def bulk_mark_all_incomplete(request: HttpRequest) -> HttpResponse:
    try:
        updated = get_service().mark_all_incomplete()
        messages.success(request, f"Marked {len(updated)} tasks as pending!")
    except TaskError as exc:
        logger.error("Error marking all tasks as pending: %s", exc.message)
        messages.error(request, f"Error marking all tasks as pending: {exc.message}")
    return redirect('tasks:index')


@require_http_methods(['GET', 'POST'])
def exit_page(request: HttpRequest) -> HttpResponse:
    """Goodbye page with final statistics."""
    if request.method == 'POST':
        logger.info("Processing application exit")
        return redirect('tasks:index')

    stats = None
    try:
        stats = get_service().stats()
    except StoreError as exc:
        logger.error("Error loading statistics: %s", exc.message)
        messages.error(request, f"Error loading statistics: {exc.message}")
    return render(request, 'tasks/exit.html', {'stats': stats})
