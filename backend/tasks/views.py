"""
API Views for the Todolist application.

This module provides the JSON REST endpoints that mirror the dashboard
operations: listing with sort/filter/search, CRUD, completion toggling,
statistics, bulk actions and import/export.
"""

import logging

from django.http import HttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.request import Request
from rest_framework.response import Response

from .errors import ErrorCode, TaskError
from .serializers import (
    BulkResultSerializer,
    TaskDraftSerializer,
    TaskSerializer,
    TaskStatsSerializer,
    parse_draft,
)
from .services import EXPORT_FILENAME, FILTER_OPTIONS, SORT_OPTIONS, TaskQueryService

logger = logging.getLogger(__name__)


ERROR_STATUS = {
    ErrorCode.ERR_VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ERR_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ERR_IMPORT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ERR_STORE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_service() -> TaskQueryService:
    return TaskQueryService()


def error_response(exc: TaskError) -> Response:
    """Convert a task error to the standard error envelope."""
    return Response(exc.to_dict(), status=ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR))


def _serialize(tasks, service: TaskQueryService, many: bool = True):
    return TaskSerializer(tasks, many=many, context={'today': service.today()}).data


# ============================================
# API ENDPOINTS
# ============================================

@extend_schema(
    methods=['GET'],
    summary="List tasks",
    description="""
    Return tasks for the dashboard.

    Exactly one listing is applied, first match wins: `search`, then
    `filter`, then `project`, then `sort`. Without parameters every task
    is returned in store order.
    """,
    parameters=[
        OpenApiParameter('sort', OpenApiTypes.STR, enum=list(SORT_OPTIONS)),
        OpenApiParameter('filter', OpenApiTypes.STR, enum=list(FILTER_OPTIONS)),
        OpenApiParameter('project', OpenApiTypes.STR),
        OpenApiParameter('search', OpenApiTypes.STR),
    ],
    responses={200: TaskSerializer(many=True)},
    tags=['Tasks']
)
@extend_schema(
    methods=['POST'],
    summary="Create a task",
    request=TaskDraftSerializer,
    responses={201: TaskSerializer, 400: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'New task',
            value={'title': 'Pay rent', 'due_date': '2024-06-01', 'project': 'Home', 'priority': 'HIGH'},
            request_only=True
        )
    ],
    tags=['Tasks']
)
@api_view(['GET', 'POST'])
def task_collection(request: Request) -> Response:
    """
    GET /api/tasks/?sort=&filter=&project=&search=
    POST /api/tasks/
    """
    service = get_service()
    if request.method == 'POST':
        try:
            task = service.create(parse_draft(request.data))
        except TaskError as exc:
            logger.error("Error adding task: %s", exc.message)
            return error_response(exc)
        return Response(_serialize(task, service, many=False), status=status.HTTP_201_CREATED)

    try:
        tasks = service.list_for_view(
            sort=request.query_params.get('sort'),
            filter_by=request.query_params.get('filter'),
            project=request.query_params.get('project'),
            search=request.query_params.get('search'),
        )
    except TaskError as exc:
        return error_response(exc)
    return Response(_serialize(tasks, service))


@extend_schema(
    methods=['GET'],
    summary="Retrieve a task",
    responses={200: TaskSerializer, 404: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@extend_schema(
    methods=['PUT'],
    summary="Update a task",
    description="Overwrite every editable field of the task with the submitted draft.",
    request=TaskDraftSerializer,
    responses={200: TaskSerializer, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@extend_schema(
    methods=['DELETE'],
    summary="Delete a task",
    responses={204: None, 404: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET', 'PUT', 'DELETE'])
def task_detail(request: Request, task_id: int) -> Response:
    """
    GET | PUT | DELETE /api/tasks/<id>/
    """
    service = get_service()
    try:
        if request.method == 'GET':
            return Response(_serialize(service.get_or_404(task_id), service, many=False))

        if request.method == 'DELETE':
            service.delete(task_id)
            return Response(status=status.HTTP_204_NO_CONTENT)

        task = service.update(task_id, parse_draft(request.data))
        return Response(_serialize(task, service, many=False))
    except TaskError as exc:
        logger.error("Error handling task %s: %s", task_id, exc.message)
        return error_response(exc)


@extend_schema(
    summary="Toggle task completion",
    request=None,
    responses={200: TaskSerializer, 404: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['POST'])
def task_toggle(request: Request, task_id: int) -> Response:
    """
    POST /api/tasks/<id>/toggle/
    """
    service = get_service()
    try:
        task = service.toggle_completion(task_id)
    except TaskError as exc:
        logger.error("Error toggling task completion: %s", exc.message)
        return error_response(exc)
    return Response(_serialize(task, service, many=False))


@extend_schema(
    summary="Task statistics",
    description="Total, completed, pending and overdue task counts.",
    responses={200: TaskStatsSerializer},
    tags=['Tasks']
)
@api_view(['GET'])
def task_stats(request: Request) -> Response:
    """
    GET /api/tasks/stats/
    """
    try:
        stats = get_service().stats()
    except TaskError as exc:
        return error_response(exc)
    return Response(TaskStatsSerializer(stats.to_dict()).data)


@extend_schema(
    summary="Project names",
    description="Distinct non-empty project names in alphabetical order.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET'])
def project_list(request: Request) -> Response:
    """
    GET /api/tasks/projects/
    """
    try:
        projects = get_service().projects()
    except TaskError as exc:
        return error_response(exc)
    return Response({'projects': projects})


# ============================================
# BULK OPERATIONS
# ============================================

def _bulk_response(affected: int, message: str) -> Response:
    return Response(BulkResultSerializer({
        'success': True,
        'affected': affected,
        'message': message,
    }).data)


@extend_schema(
    summary="Delete completed tasks",
    request=None,
    responses={200: BulkResultSerializer},
    tags=['Bulk']
)
@api_view(['POST'])
def bulk_delete_completed(request: Request) -> Response:
    """
    POST /api/tasks/bulk/delete-completed/
    """
    try:
        deleted = get_service().delete_completed()
    except TaskError as exc:
        logger.error("Error deleting completed tasks: %s", exc.message)
        return error_response(exc)
    return _bulk_response(deleted, f"Deleted {deleted} completed tasks")


@extend_schema(
    summary="Mark every task completed",
    request=None,
    responses={200: BulkResultSerializer},
    tags=['Bulk']
)
@api_view(['POST'])
def bulk_mark_all_completed(request: Request) -> Response:
    """
    POST /api/tasks/bulk/mark-all-completed/
    """
    try:
        updated = get_service().mark_all_completed()
    except TaskError as exc:
        logger.error("Error marking all tasks as completed: %s", exc.message)
        return error_response(exc)
    return _bulk_response(len(updated), f"Marked {len(updated)} tasks as completed")


@extend_schema(
    summary="Mark every task pending",
    request=None,
    responses={200: BulkResultSerializer},
    tags=['Bulk']
)
@api_view(['POST'])
def bulk_mark_all_incomplete(request: Request) -> Response:
    """
    POST /api/tasks/bulk/mark-all-incomplete/
    """
    try:
        updated = get_service().mark_all_incomplete()
    except TaskError as exc:
        logger.error("Error marking all tasks as pending: %s", exc.message)
        return error_response(exc)
    return _bulk_response(len(updated), f"Marked {len(updated)} tasks as pending")


# ============================================
# IMPORT / EXPORT
# ============================================

@extend_schema(
    summary="Export tasks as JSON",
    description="Download every task as a JSON array attachment.",
    responses={200: OpenApiTypes.STR},
    tags=['Export']
)
@api_view(['GET'])
def export_json(request: Request):
    """
    GET /api/tasks/export/
    """
    try:
        payload = get_service().export_json()
    except TaskError as exc:
        logger.error("Error exporting tasks: %s", exc.message)
        return error_response(exc)
    response = HttpResponse(payload, content_type='application/json')
    response['Content-Disposition'] = f'attachment; filename="{EXPORT_FILENAME}"'
    return response


@extend_schema(
    summary="Import tasks from JSON",
    description="""
    Create new tasks from a JSON array. Supplied ids and timestamps are
    ignored; nothing is written unless every element is valid.
    """,
    request={'application/json': {'type': 'array', 'items': {'type': 'object'}}},
    responses={200: BulkResultSerializer, 400: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Import document',
            value=[{'title': 'Buy milk', 'dueDate': '2024-01-01', 'priority': 'LOW'}],
            request_only=True
        )
    ],
    tags=['Export']
)
@api_view(['POST'])
def import_json(request: Request) -> Response:
    """
    POST /api/tasks/import/

    The raw body is handed to the service so malformed JSON is reported
    as an import error rather than a parser error.
    """
    try:
        imported = get_service().import_json(request.body)
    except TaskError as exc:
        logger.error("Error importing tasks: %s", exc.message)
        return error_response(exc)
    return _bulk_response(len(imported), f"Successfully imported {len(imported)} tasks")


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
        'name': 'Todolist API',
        'version': '1.0.0',
        'documentation': '/api/docs/',
        'endpoints': {
            'GET /api/tasks/': 'List tasks (sort, filter, project, search)',
            'POST /api/tasks/': 'Create a task',
            'GET|PUT|DELETE /api/tasks/<id>/': 'Retrieve, update or delete a task',
            'POST /api/tasks/<id>/toggle/': 'Toggle completion',
            'GET /api/tasks/stats/': 'Task counts',
            'GET /api/tasks/projects/': 'Project names',
            'POST /api/tasks/bulk/delete-completed/': 'Delete completed tasks',
            'POST /api/tasks/bulk/mark-all-completed/': 'Mark every task completed',
            'POST /api/tasks/bulk/mark-all-incomplete/': 'Mark every task pending',
            'GET /api/tasks/export/': 'Download tasks as JSON',
            'POST /api/tasks/import/': 'Import tasks from JSON',
            'GET /api/docs/': 'Interactive API documentation',
            'GET /api/schema/': 'OpenAPI schema',
        },
        'sort_options': list(SORT_OPTIONS),
        'filter_options': list(FILTER_OPTIONS),
        'error_codes': {
            code.value: code.name for code in ErrorCode
        }
    })
