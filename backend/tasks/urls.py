"""
URL configuration for the tasks app.
"""

from django.urls import path

from . import pages, views

app_name = 'tasks'

urlpatterns = [
    # Pages
    path('', pages.task_index, name='index'),
    path('tasks/', pages.task_index, name='task-list'),
    path('tasks/<int:task_id>/toggle/', pages.task_toggle, name='task-toggle'),
    path('tasks/<int:task_id>/delete/', pages.task_delete, name='task-delete'),
    path('tasks/<int:task_id>/edit/', pages.task_edit, name='task-edit'),
    path('tasks/export/', pages.task_export, name='task-export'),
    path('tasks/import/', pages.task_import, name='task-import'),
    path('tasks/bulk/delete-completed/', pages.bulk_delete_completed, name='bulk-delete-completed'),
    path('tasks/bulk/mark-all-completed/', pages.bulk_mark_all_completed, name='bulk-mark-all-completed'),
    path('tasks/bulk/mark-all-incomplete/', pages.bulk_mark_all_incomplete, name='bulk-mark-all-incomplete'),
    path('exit/', pages.exit_page, name='exit'),
    # JSON API
    path('api/', views.api_info, name='api-info'),
    path('api/tasks/', views.task_collection, name='api-task-list'),
    path('api/tasks/stats/', views.task_stats, name='api-task-stats'),
    path('api/tasks/projects/', views.project_list, name='api-project-list'),
    path('api/tasks/export/', views.export_json, name='api-export'),
    path('api/tasks/import/', views.import_json, name='api-import'),
    path('api/tasks/bulk/delete-completed/', views.bulk_delete_completed, name='api-bulk-delete-completed'),
    path('api/tasks/bulk/mark-all-completed/', views.bulk_mark_all_completed, name='api-bulk-mark-all-completed'),
    path('api/tasks/bulk/mark-all-incomplete/', views.bulk_mark_all_incomplete, name='api-bulk-mark-all-incomplete'),
    path('api/tasks/<int:task_id>/', views.task_detail, name='api-task-detail'),
    path('api/tasks/<int:task_id>/toggle/', views.task_toggle, name='api-task-toggle'),
]
