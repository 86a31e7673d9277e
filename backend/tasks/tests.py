"""
Unit Tests for the Todolist application.

This module covers the store queries, the service rules (listing
precedence, toggling, bulk actions, import/export), draft validation,
and the HTML and JSON endpoints.
"""

from datetime import date, timedelta
from unittest import mock
import json

from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .errors import StoreError, TaskImportError, TaskNotFound, TaskValidationError
from .models import Priority, Task
from .serializers import TaskDraft, parse_draft, validate_draft
from .services import EXPORT_FILENAME, TaskQueryService
from .store import TaskStore


TODAY = date(2024, 3, 1)


def make_task(store, title, **fields):
    """Create and persist a task through the store."""
    return store.create(Task(title=title, **fields))


class TaskModelTests(TestCase):
    """Tests for the overdue rule and presentation helpers."""

    def test_past_due_pending_is_overdue(self):
        task = Task(title='Late', due_date=TODAY - timedelta(days=1))
        self.assertTrue(task.is_overdue(TODAY))

    def test_due_today_is_not_overdue(self):
        task = Task(title='Today', due_date=TODAY)
        self.assertFalse(task.is_overdue(TODAY))

    def test_no_due_date_is_never_overdue(self):
        task = Task(title='Someday')
        self.assertFalse(task.is_overdue(TODAY))

    def test_completed_task_is_never_overdue(self):
        task = Task(title='Done', due_date=TODAY - timedelta(days=30), completed=True)
        self.assertFalse(task.is_overdue(TODAY))

    def test_status_helpers(self):
        done = Task(title='Done', completed=True)
        late = Task(title='Late', due_date=date(2000, 1, 1))
        self.assertEqual(done.status_text, 'Completed')
        self.assertEqual(done.status_class(), 'success')
        self.assertEqual(late.status_text, 'Pending')
        self.assertEqual(late.status_class(), 'danger')

    def test_status_class_uses_given_day(self):
        task = Task(title='Rent', due_date=date(2024, 6, 1))
        self.assertEqual(task.status_class(TODAY), 'primary')
        self.assertEqual(task.status_class(date(2024, 6, 2)), 'danger')

    def test_priority_display(self):
        task = Task(title='Urgent', priority=Priority.HIGH)
        self.assertEqual(task.priority_label, 'High')
        self.assertEqual(task.priority_class, 'danger')
        self.assertEqual(Task(title='Default').priority, Priority.MEDIUM)


class DraftValidationTests(TestCase):
    """Tests for validate_draft and parse_draft."""

    def test_minimal_draft_gets_defaults(self):
        draft, errors = validate_draft({'title': 'Buy milk'})
        self.assertEqual(errors, {})
        self.assertEqual(draft.title, 'Buy milk')
        self.assertEqual(draft.priority, Priority.MEDIUM)
        self.assertFalse(draft.completed)
        self.assertIsNone(draft.due_date)
        self.assertIsNone(draft.project)

    def test_missing_title_rejected(self):
        draft, errors = validate_draft({'description': 'no title'})
        self.assertIsNone(draft)
        self.assertIn('title', errors)

    def test_blank_title_rejected(self):
        _, errors = validate_draft({'title': '   '})
        self.assertIn('title', errors)

    def test_oversize_fields_rejected(self):
        _, errors = validate_draft({
            'title': 'x' * 201,
            'description': 'd' * 1001,
            'project': 'p' * 101,
        })
        self.assertEqual(set(errors), {'title', 'description', 'project'})

    def test_boundary_lengths_accepted(self):
        _, errors = validate_draft({
            'title': 'x' * 200,
            'description': 'd' * 1000,
            'project': 'p' * 100,
        })
        self.assertEqual(errors, {})

    def test_invalid_priority_and_date_rejected(self):
        _, errors = validate_draft({'title': 'T', 'priority': 'URGENT', 'due_date': '2024-13-45'})
        self.assertIn('priority', errors)
        self.assertIn('due_date', errors)

    def test_parse_draft_keeps_original_input(self):
        data = {'title': ''}
        with self.assertRaises(TaskValidationError) as ctx:
            parse_draft(data)
        self.assertIs(ctx.exception.data, data)
        self.assertIn('title', ctx.exception.errors)

    def test_draft_from_task_round_trip(self):
        store = TaskStore()
        task = make_task(store, 'Edit me', project='Home', priority=Priority.LOW)
        draft = TaskDraft.from_task(task)
        self.assertEqual(draft.id, task.id)
        self.assertEqual(draft.to_initial()['project'], 'Home')
        self.assertIsNone(draft.to_task().pk)


class TaskStoreTests(TestCase):
    """Tests for CRUD and canned queries."""

    def setUp(self):
        self.store = TaskStore()

    def test_create_assigns_id_and_equal_timestamps(self):
        first = make_task(self.store, 'One')
        second = make_task(self.store, 'Two')

        self.assertIsNotNone(first.id)
        self.assertNotEqual(first.id, second.id)
        self.assertEqual(first.created_at, first.updated_at)

    def test_create_ignores_supplied_id(self):
        existing = make_task(self.store, 'Existing')
        task = self.store.create(Task(id=existing.id, title='New'))

        self.assertNotEqual(task.id, existing.id)
        self.assertEqual(self.store.get(existing.id).title, 'Existing')

    def test_update_moves_updated_at_forward(self):
        task = make_task(self.store, 'Original')
        created_at = task.created_at
        previous = task.updated_at

        task.title = 'Changed'
        updated = self.store.update(task)

        self.assertGreater(updated.updated_at, previous)
        self.assertEqual(updated.created_at, created_at)
        self.assertEqual(self.store.get(task.id).title, 'Changed')

    def test_update_missing_raises_not_found(self):
        with self.assertRaises(TaskNotFound):
            self.store.update(Task(id=42, title='Ghost'))
        self.assertEqual(self.store.count_all(), 0)

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.store.get(12345))

    def test_delete(self):
        task = make_task(self.store, 'Remove me')
        self.store.delete(task.id)
        self.assertIsNone(self.store.get(task.id))

        with self.assertRaises(TaskNotFound):
            self.store.delete(task.id)

    def test_list_by_project_ignores_case(self):
        make_task(self.store, 'A', project='Work')
        make_task(self.store, 'B', project='work')
        make_task(self.store, 'C', project='Home')

        titles = [t.title for t in self.store.list_by_project('WORK')]
        self.assertEqual(titles, ['A', 'B'])

    def test_search_matches_title_or_description(self):
        make_task(self.store, 'Buy MILK')
        make_task(self.store, 'Groceries', description='oat milk and bread')
        make_task(self.store, 'Pay rent')

        titles = [t.title for t in self.store.search_by_keyword('milk')]
        self.assertEqual(titles, ['Buy MILK', 'Groceries'])

    def test_list_overdue_example(self):
        a = make_task(self.store, 'Buy milk', due_date=date(2024, 1, 1))
        make_task(self.store, 'Pay rent', due_date=date(2024, 6, 1))
        make_task(self.store, 'Old but done', due_date=date(2023, 1, 1), completed=True)

        self.assertEqual(self.store.list_overdue(TODAY), [a])
        self.assertEqual(self.store.count_overdue(TODAY), 1)

    def test_due_on_and_between(self):
        make_task(self.store, 'Start', due_date=date(2024, 3, 1))
        make_task(self.store, 'End', due_date=date(2024, 3, 8))
        make_task(self.store, 'Done', due_date=date(2024, 3, 4), completed=True)
        make_task(self.store, 'Later', due_date=date(2024, 3, 9))

        self.assertEqual([t.title for t in self.store.list_due_on(TODAY)], ['Start'])
        between = self.store.list_due_between(date(2024, 3, 1), date(2024, 3, 8))
        self.assertEqual([t.title for t in between], ['Start', 'End'])

    def test_sort_by_due_date_puts_undated_last(self):
        make_task(self.store, 'No date')
        make_task(self.store, 'Late', due_date=date(2024, 5, 1))
        make_task(self.store, 'Early', due_date=date(2024, 1, 1))
        make_task(self.store, 'Early too', due_date=date(2024, 1, 1))

        ascending = [t.title for t in self.store.list_by_due_date(ascending=True)]
        descending = [t.title for t in self.store.list_by_due_date(ascending=False)]

        self.assertEqual(ascending, ['Early', 'Early too', 'Late', 'No date'])
        self.assertEqual(descending, ['Late', 'Early too', 'Early', 'No date'])

    def test_sort_by_priority_high_first(self):
        make_task(self.store, 'low', priority=Priority.LOW)
        make_task(self.store, 'high later', priority=Priority.HIGH, due_date=date(2024, 9, 1))
        make_task(self.store, 'medium', priority=Priority.MEDIUM)
        make_task(self.store, 'high soon', priority=Priority.HIGH, due_date=date(2024, 2, 1))

        priorities = [t.priority for t in self.store.list_by_priority()]
        titles = [t.title for t in self.store.list_by_priority()]

        self.assertEqual(priorities, ['HIGH', 'HIGH', 'MEDIUM', 'LOW'])
        self.assertEqual(titles[:2], ['high soon', 'high later'])

    def test_sort_by_project_then_due_date(self):
        make_task(self.store, 'w2', project='Work', due_date=date(2024, 4, 1))
        make_task(self.store, 'h', project='Home')
        make_task(self.store, 'w1', project='Work', due_date=date(2024, 2, 1))

        titles = [t.title for t in self.store.list_by_project_name() if t.project]
        self.assertEqual(titles, ['h', 'w1', 'w2'])

    def test_sort_by_created_newest_first(self):
        make_task(self.store, 'first')
        make_task(self.store, 'second')
        self.assertEqual([t.title for t in self.store.list_by_created()], ['second', 'first'])

    def test_distinct_projects(self):
        make_task(self.store, 'a', project='Work')
        make_task(self.store, 'b', project='Home')
        make_task(self.store, 'c', project='Work')
        make_task(self.store, 'd', project='')
        make_task(self.store, 'e')

        self.assertEqual(self.store.distinct_projects(), ['Home', 'Work'])

    def test_counts(self):
        make_task(self.store, 'a', completed=True)
        make_task(self.store, 'b')
        make_task(self.store, 'c')

        self.assertEqual(self.store.count_all(), 3)
        self.assertEqual(self.store.count_by_completed(True), 1)
        self.assertEqual(self.store.count_by_completed(False), 2)

    def test_find_by_criteria_and_semantics(self):
        make_task(self.store, 'Write report', project='Work')
        make_task(self.store, 'Report bug', project='Work', completed=True)
        make_task(self.store, 'Read report', project='Home')

        self.assertEqual(len(self.store.find_by_criteria()), 3)
        self.assertEqual(len(self.store.find_by_criteria(project='Work')), 2)
        only = self.store.find_by_criteria(project='Work', completed=False, keyword='REPORT')
        self.assertEqual([t.title for t in only], ['Write report'])

    def test_delete_all(self):
        make_task(self.store, 'a')
        make_task(self.store, 'b', completed=True)

        self.assertEqual(self.store.delete_all(), 2)
        self.assertEqual(self.store.count_all(), 0)
        self.assertEqual(self.store.delete_all(), 0)

    def test_project_and_keyword_ignore_non_ascii_case(self):
        make_task(self.store, 'Übung', description='Grüße an ÄRGER', project='Ärger')
        make_task(self.store, 'Other', project='Work')

        self.assertEqual([t.title for t in self.store.list_by_project('ärger')], ['Übung'])
        self.assertEqual([t.title for t in self.store.search_by_keyword('übung')], ['Übung'])
        self.assertEqual([t.title for t in self.store.search_by_keyword('grüsse')], ['Übung'])
        self.assertEqual(
            [t.title for t in self.store.find_by_criteria(project='Ärger', keyword='ärger')],
            ['Übung']
        )

    def test_database_failure_becomes_store_error(self):
        with mock.patch.object(Task, 'save', side_effect=DatabaseError('disk full')):
            with self.assertRaises(StoreError):
                make_task(self.store, 'Doomed')


class TaskQueryServiceTests(TestCase):
    """Tests for listing precedence and task mutations."""

    def setUp(self):
        self.service = TaskQueryService(today=lambda: TODAY)
        self.store = self.service.store
        self.milk = make_task(self.store, 'Buy milk', due_date=date(2024, 1, 1), project='Home')
        self.rent = make_task(
            self.store, 'Pay rent', due_date=date(2024, 6, 1), priority=Priority.HIGH
        )

    def test_filter_pending_returns_store_order(self):
        self.assertEqual(self.service.list_for_view(filter_by='pending'), [self.milk, self.rent])

    def test_filter_overdue(self):
        self.assertEqual(self.service.list_for_view(filter_by='overdue'), [self.milk])

    def test_search_overrides_filter_and_sort(self):
        self.service.toggle_completion(self.rent.id)
        tasks = self.service.list_for_view(sort='priority', filter_by='pending', search='rent')
        self.assertEqual([t.title for t in tasks], ['Pay rent'])

    def test_blank_search_is_ignored(self):
        tasks = self.service.list_for_view(filter_by='overdue', search='   ')
        self.assertEqual(tasks, [self.milk])

    def test_filter_wins_over_project_and_sort(self):
        tasks = self.service.list_for_view(sort='priority', filter_by='completed', project='Home')
        self.assertEqual(tasks, [])

    def test_project_wins_over_sort(self):
        tasks = self.service.list_for_view(sort='priority', project='home')
        self.assertEqual(tasks, [self.milk])

    def test_sort_applied_when_nothing_else(self):
        tasks = self.service.list_for_view(sort='priority')
        self.assertEqual(tasks, [self.rent, self.milk])

    def test_unknown_parameters_fall_back_to_all(self):
        tasks = self.service.list_for_view(sort='bogus', filter_by='bogus')
        self.assertEqual(tasks, [self.milk, self.rent])

    def test_create_ignores_draft_id(self):
        task = self.service.create(TaskDraft(title='New', id=self.milk.id))
        self.assertNotEqual(task.id, self.milk.id)
        self.assertEqual(self.store.get(self.milk.id).title, 'Buy milk')

    def test_update_overwrites_every_field(self):
        draft = TaskDraft(
            title='Buy oat milk',
            description='the barista one',
            due_date=date(2024, 2, 2),
            project='Errands',
            priority=Priority.LOW,
            completed=True,
        )
        task = self.service.update(self.milk.id, draft)

        self.assertEqual(task.title, 'Buy oat milk')
        self.assertEqual(task.description, 'the barista one')
        self.assertEqual(task.due_date, date(2024, 2, 2))
        self.assertEqual(task.project, 'Errands')
        self.assertEqual(task.priority, Priority.LOW)
        self.assertTrue(task.completed)

    def test_update_missing_leaves_store_unchanged(self):
        before = list(Task.objects.values())
        with self.assertRaises(TaskNotFound):
            self.service.update(42, TaskDraft(title='Ghost'))
        self.assertEqual(list(Task.objects.values()), before)

    def test_toggle_is_its_own_inverse(self):
        once = self.service.toggle_completion(self.milk.id)
        twice = self.service.toggle_completion(self.milk.id)
        self.assertTrue(once.completed)
        self.assertFalse(twice.completed)

    def test_toggle_missing_raises(self):
        with self.assertRaises(TaskNotFound):
            self.service.toggle_completion(999)

    def test_mark_single_task(self):
        self.assertTrue(self.service.mark_completed(self.milk.id).completed)
        self.assertFalse(self.service.mark_incomplete(self.milk.id).completed)

    def test_delete_completed_removes_only_completed(self):
        self.service.toggle_completion(self.milk.id)
        make_task(self.store, 'Also done', completed=True)

        deleted = self.service.delete_completed()

        self.assertEqual(deleted, 2)
        self.assertEqual(self.service.list_all(), [self.rent])

    def test_mark_all_completed_and_incomplete(self):
        updated = self.service.mark_all_completed()
        self.assertEqual(len(updated), 2)
        self.assertEqual(self.store.count_by_completed(True), 2)

        self.service.mark_all_incomplete()
        self.assertEqual(self.store.count_by_completed(False), 2)

    def test_mark_all_reports_partial_failure(self):
        original_update = self.store.update
        calls = []

        def flaky_update(task):
            calls.append(task.id)
            if len(calls) == 2:
                raise StoreError("database is locked")
            return original_update(task)

        with mock.patch.object(self.store, 'update', side_effect=flaky_update):
            with self.assertRaises(StoreError) as ctx:
                self.service.mark_all_completed()

        self.assertEqual(ctx.exception.processed, 1)
        self.assertEqual(self.store.count_by_completed(True), 1)

    def test_delete_all(self):
        self.assertEqual(self.service.delete_all(), 2)
        self.assertEqual(self.service.list_all(), [])
        self.assertEqual(self.service.stats().total, 0)

    def test_delete_completed_reports_partial_failure(self):
        make_task(self.store, 'Done one', completed=True)
        make_task(self.store, 'Done two', completed=True)
        original_delete = self.store.delete
        calls = []

        def flaky_delete(task_id):
            calls.append(task_id)
            if len(calls) == 2:
                raise StoreError("database is locked")
            return original_delete(task_id)

        with mock.patch.object(self.store, 'delete', side_effect=flaky_delete):
            with self.assertRaises(StoreError) as ctx:
                self.service.delete_completed()

        self.assertEqual(ctx.exception.processed, 1)
        self.assertEqual(self.store.count_by_completed(True), 1)
        self.assertEqual(self.store.count_all(), 3)

    def test_stats(self):
        self.service.toggle_completion(self.rent.id)
        stats = self.service.stats()
        self.assertEqual(stats.to_dict(), {'total': 2, 'completed': 1, 'pending': 1, 'overdue': 1})

    def test_due_today_and_within_days(self):
        make_task(self.store, 'Today', due_date=TODAY)
        make_task(self.store, 'Soon', due_date=TODAY + timedelta(days=3))

        self.assertEqual([t.title for t in self.service.list_due_today()], ['Today'])
        self.assertEqual(
            [t.title for t in self.service.list_due_within_days(7)], ['Today', 'Soon']
        )

    def test_projects(self):
        self.assertEqual(self.service.projects(), ['Home'])


class ImportExportTests(TestCase):
    """Tests for JSON export and import."""

    def setUp(self):
        self.service = TaskQueryService(today=lambda: TODAY)
        self.store = self.service.store

    def test_export_format(self):
        make_task(self.store, 'Buy milk', due_date=date(2024, 1, 1), project='Home')

        exported = json.loads(self.service.export_json())

        self.assertEqual(len(exported), 1)
        item = exported[0]
        self.assertEqual(item['title'], 'Buy milk')
        self.assertEqual(item['dueDate'], '2024-01-01')
        self.assertEqual(item['priority'], 'MEDIUM')
        self.assertFalse(item['completed'])
        self.assertRegex(item['createdAt'], r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}$')

    def test_export_then_import_round_trip(self):
        make_task(self.store, 'Buy milk', due_date=date(2024, 1, 1), project='Home')
        make_task(
            self.store, 'Pay rent', description='before the 5th',
            priority=Priority.HIGH, completed=True
        )
        exported = self.service.export_json()
        old_ids = set(Task.objects.values_list('id', flat=True))
        Task.objects.all().delete()

        imported = self.service.import_json(exported)

        fields = ('title', 'description', 'due_date', 'project', 'priority', 'completed')
        self.assertEqual(
            [tuple(getattr(t, f) for f in fields) for t in imported],
            [
                ('Buy milk', None, date(2024, 1, 1), 'Home', 'MEDIUM', False),
                ('Pay rent', 'before the 5th', None, None, 'HIGH', True),
            ]
        )
        self.assertTrue(old_ids.isdisjoint(t.id for t in imported))

    def test_import_discards_supplied_id(self):
        imported = self.service.import_json('[{"title": "X", "id": 999}]')
        self.assertEqual(len(imported), 1)
        self.assertNotEqual(imported[0].id, 999)
        self.assertEqual(imported[0].title, 'X')

    def test_import_never_overwrites(self):
        existing = make_task(self.store, 'Keep me')
        self.service.import_json(json.dumps([{'title': 'Other', 'id': existing.id}]))
        self.assertEqual(self.store.get(existing.id).title, 'Keep me')
        self.assertEqual(self.store.count_all(), 2)

    def test_import_accepts_snake_case_dates(self):
        imported = self.service.import_json('[{"title": "Y", "due_date": "2024-02-29"}]')
        self.assertEqual(imported[0].due_date, date(2024, 2, 29))

    def test_import_malformed_json(self):
        with self.assertRaises(TaskImportError):
            self.service.import_json('[{"title": ')
        self.assertEqual(self.store.count_all(), 0)

    def test_import_requires_array(self):
        with self.assertRaises(TaskImportError):
            self.service.import_json('{"title": "X"}')

    def test_import_invalid_element_creates_nothing(self):
        document = json.dumps([{'title': 'Fine'}, {'description': 'no title'}, 'nope'])
        with self.assertRaises(TaskImportError) as ctx:
            self.service.import_json(document)

        self.assertEqual(set(ctx.exception.errors), {'1', '2'})
        self.assertEqual(self.store.count_all(), 0)

    def test_import_deeply_nested_json(self):
        with self.assertRaises(TaskImportError) as ctx:
            self.service.import_json('[' * 200000)

        self.assertIn('Malformed JSON', ctx.exception.message)
        self.assertEqual(self.store.count_all(), 0)

    def test_import_reports_partial_write_failure(self):
        original_create = self.store.create
        calls = []

        def flaky_create(task):
            calls.append(task.title)
            if len(calls) == 3:
                raise StoreError("disk full")
            return original_create(task)

        document = json.dumps([{'title': 'A'}, {'title': 'B'}, {'title': 'C'}])
        with mock.patch.object(self.store, 'create', side_effect=flaky_create):
            with self.assertRaises(StoreError) as ctx:
                self.service.import_json(document)

        self.assertEqual(ctx.exception.processed, 2)
        self.assertEqual([t.title for t in self.store.list()], ['A', 'B'])


class TaskPageTests(TestCase):
    """Tests for the server-rendered pages."""

    def setUp(self):
        self.store = TaskStore()

    def test_dashboard_lists_tasks_and_stats(self):
        make_task(self.store, 'Buy milk', project='Home')
        response = self.client.get('/')

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Buy milk')
        self.assertEqual(response.context['stats'].total, 1)
        self.assertEqual(response.context['projects'], ['Home'])

    def test_dashboard_applies_search(self):
        make_task(self.store, 'Buy milk')
        make_task(self.store, 'Pay rent')
        response = self.client.get('/tasks/', {'search': 'rent'})

        self.assertEqual([t.title for t in response.context['tasks']], ['Pay rent'])

    def test_create_task(self):
        response = self.client.post('/tasks/', {
            'title': 'Buy milk',
            'due_date': '2024-01-01',
            'project': 'Home',
            'priority': 'HIGH',
            'description': '',
        })

        self.assertRedirects(response, reverse('tasks:index'))
        task = Task.objects.get()
        self.assertEqual(task.priority, 'HIGH')
        self.assertEqual(task.due_date, date(2024, 1, 1))
        self.assertFalse(task.completed)

    def test_create_invalid_keeps_input(self):
        response = self.client.post('/tasks/', {
            'title': '',
            'description': 'keep this text',
            'priority': 'LOW',
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(Task.objects.count(), 0)
        self.assertIn('title', response.context['form_errors'])
        self.assertContains(response, 'keep this text', status_code=400)

    def test_toggle(self):
        task = make_task(self.store, 'Toggle me')
        response = self.client.post(f'/tasks/{task.id}/toggle/', follow=True)

        self.assertTrue(self.store.get(task.id).completed)
        self.assertContains(response, 'marked as completed')

    def test_toggle_missing_shows_error(self):
        response = self.client.post('/tasks/999/toggle/', follow=True)
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Task not found with ID: 999')

    def test_delete(self):
        task = make_task(self.store, 'Remove me')
        response = self.client.post(f'/tasks/{task.id}/delete/', follow=True)

        self.assertFalse(Task.objects.exists())
        self.assertContains(response, 'deleted successfully')

    def test_edit_form_prefilled_and_update(self):
        task = make_task(self.store, 'Old title', project='Home')

        response = self.client.get(f'/tasks/{task.id}/edit/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['form_data']['title'], 'Old title')

        response = self.client.post(f'/tasks/{task.id}/edit/', {
            'title': 'New title',
            'priority': 'LOW',
            'completed': 'on',
        })
        self.assertRedirects(response, reverse('tasks:index'))
        task.refresh_from_db()
        self.assertEqual(task.title, 'New title')
        self.assertTrue(task.completed)
        self.assertIsNone(task.project)

    def test_dashboard_badge_follows_service_clock(self):
        make_task(self.store, 'Pay rent', due_date=date(2024, 6, 1))
        service = TaskQueryService(today=lambda: TODAY)

        with mock.patch('tasks.pages.get_service', return_value=service):
            response = self.client.get('/')

        self.assertEqual(response.context['stats'].overdue, 0)
        self.assertEqual(response.context['tasks'][0].status_badge, 'primary')
        self.assertContains(response, 'badge bg-primary')

    def test_edit_invalid_keeps_input(self):
        task = make_task(self.store, 'Old title')
        response = self.client.post(f'/tasks/{task.id}/edit/', {
            'title': '   ',
            'description': 'draft notes',
        })

        self.assertEqual(response.status_code, 400)
        self.assertIn('title', response.context['form_errors'])
        self.assertContains(response, 'draft notes', status_code=400)
        self.assertEqual(self.store.get(task.id).title, 'Old title')

    def test_edit_missing_task_redirects(self):
        response = self.client.get('/tasks/42/edit/')
        self.assertRedirects(response, reverse('tasks:index'))

    def test_export_download(self):
        make_task(self.store, 'Buy milk')
        response = self.client.get('/tasks/export/')

        self.assertEqual(response.status_code, 200)
        self.assertIn(EXPORT_FILENAME, response['Content-Disposition'])
        self.assertTrue(response['Content-Disposition'].startswith('attachment'))
        self.assertEqual(json.loads(response.content)[0]['title'], 'Buy milk')

    def test_import_upload(self):
        upload = SimpleUploadedFile(
            'tasks.json',
            b'[{"title": "A"}, {"title": "B", "priority": "HIGH"}]',
            content_type='application/json'
        )
        response = self.client.post('/tasks/import/', {'file': upload}, follow=True)

        self.assertContains(response, 'Successfully imported 2 tasks!')
        self.assertEqual(Task.objects.count(), 2)

    def test_import_bad_file_reports_error(self):
        upload = SimpleUploadedFile('tasks.json', b'not json', content_type='application/json')
        response = self.client.post('/tasks/import/', {'file': upload}, follow=True)

        self.assertContains(response, 'Error importing tasks')
        self.assertEqual(Task.objects.count(), 0)

    def test_import_without_file(self):
        response = self.client.post('/tasks/import/', follow=True)
        self.assertContains(response, 'Please select a file to import')

    def test_bulk_actions(self):
        make_task(self.store, 'a')
        make_task(self.store, 'b')

        response = self.client.post('/tasks/bulk/mark-all-completed/', follow=True)
        self.assertContains(response, 'Marked 2 tasks as completed!')

        response = self.client.post('/tasks/bulk/delete-completed/', follow=True)
        self.assertContains(response, 'Deleted 2 completed tasks!')
        self.assertFalse(Task.objects.exists())

    def test_exit_page(self):
        make_task(self.store, 'a', completed=True)
        response = self.client.get('/exit/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['stats'].completed, 1)

        response = self.client.post('/exit/')
        self.assertRedirects(response, reverse('tasks:index'))


class APIEndpointTests(APITestCase):
    """Tests for the JSON API."""

    def setUp(self):
        self.store = TaskStore()
        today = date.today()
        self.late = make_task(self.store, 'Late', due_date=today - timedelta(days=3))
        self.done = make_task(self.store, 'Done', completed=True, priority=Priority.HIGH)

    def test_list_tasks(self):
        response = self.client.get('/api/tasks/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['title'] for t in response.data], ['Late', 'Done'])
        self.assertTrue(response.data[0]['is_overdue'])
        self.assertFalse(response.data[1]['is_overdue'])

    def test_list_with_filter(self):
        response = self.client.get('/api/tasks/', {'filter': 'completed'})
        self.assertEqual([t['title'] for t in response.data], ['Done'])

    def test_stats(self):
        response = self.client.get('/api/tasks/stats/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'total': 2, 'completed': 1, 'pending': 1, 'overdue': 1})

    def test_toggle(self):
        response = self.client.post(f'/api/tasks/{self.late.id}/toggle/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['completed'])

    def test_toggle_missing_returns_404(self):
        response = self.client.post('/api/tasks/999/toggle/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error_code'], 'ERR_NOT_FOUND')

    def test_create(self):
        response = self.client.post('/api/tasks/', {'title': 'New', 'priority': 'LOW'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['priority'], 'LOW')
        self.assertEqual(response.data['created_at'], response.data['updated_at'])

    def test_create_invalid(self):
        response = self.client.post('/api/tasks/', {'title': 'x' * 201}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('title', response.data['errors'])
        self.assertEqual(Task.objects.count(), 2)

    def test_retrieve_update_delete(self):
        url = f'/api/tasks/{self.late.id}/'

        self.assertEqual(self.client.get(url).data['title'], 'Late')

        response = self.client.put(url, {'title': 'On time', 'completed': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'On time')
        self.assertIsNone(response.data['due_date'])

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_update_missing_returns_404(self):
        response = self.client.put('/api/tasks/42/', {'title': 'Ghost'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_projects(self):
        make_task(self.store, 'Work item', project='Work')
        response = self.client.get('/api/tasks/projects/')
        self.assertEqual(response.data, {'projects': ['Work']})

    def test_bulk_delete_completed(self):
        response = self.client.post('/api/tasks/bulk/delete-completed/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['affected'], 1)
        self.assertEqual(list(Task.objects.values_list('title', flat=True)), ['Late'])

    def test_bulk_mark_all_completed(self):
        response = self.client.post('/api/tasks/bulk/mark-all-completed/')
        self.assertEqual(response.data['affected'], 2)
        self.assertFalse(Task.objects.filter(completed=False).exists())

    def test_import(self):
        response = self.client.post(
            '/api/tasks/import/',
            data=json.dumps([{'title': 'X', 'id': 999}]),
            content_type='application/json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['affected'], 1)
        self.assertFalse(Task.objects.filter(id=999).exists())

    def test_import_malformed(self):
        response = self.client.post(
            '/api/tasks/import/',
            data='[{"title": ',
            content_type='application/json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_IMPORT')
        self.assertEqual(Task.objects.count(), 2)

    def test_import_deeply_nested(self):
        response = self.client.post(
            '/api/tasks/import/',
            data='[' * 200000,
            content_type='application/json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_IMPORT')
        self.assertEqual(Task.objects.count(), 2)

    def test_export(self):
        response = self.client.get('/api/tasks/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(EXPORT_FILENAME, response['Content-Disposition'])

    def test_api_info_endpoint(self):
        response = self.client.get('/api/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('name', response.data)
        self.assertIn('endpoints', response.data)
        self.assertIn('error_codes', response.data)
