"""
Creator app tests – exam manager (with an in-memory backend), JSON API,
Manage Exams screen, authentication and security headers.
"""
import json
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import BytesIO

from django.contrib.auth import get_user_model
from django.contrib.messages import get_messages
from django.test import Client, SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from core.models import (
    ExamDate, ExamDateLocation, ExamType, Location, Organization, OrganizationAdmin,
)
from core.scheduling.drafts import ExamDateDraft, ExamDateEditDraft, ExamTypeDraft
from core.scheduling.records import ExamDateRecord, ExamTypeRecord, LocationRef
from core.scheduling.timestamps import format_wall_clock
from core.scheduling.validation import DATE_BEFORE_DEADLINE
from creator.backend import BackendError, BackendNotFound, DatabaseExamBackend, ExamBackend
from creator.orchestrator import (
    GENERIC_ERROR,
    ORGANIZATION_REQUIRED,
    ExamManager,
    ReloadGuard,
    SessionContext,
    describe_error,
)

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=dt_timezone.utc)


class FakeBackend(ExamBackend):
    """In-memory backend recording every call."""

    def __init__(self, exam_types=None, fail_with=None):
        self.exam_types = list(exam_types or [])
        self.fail_with = fail_with
        self.calls = []

    def _mutate(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_with is not None:
            raise self.fail_with
        return {'ok': name}

    def call_names(self):
        return [call[0] for call in self.calls]

    def list_exams(self, organization_id):
        self.calls.append(('list_exams', organization_id))
        return list(self.exam_types)

    def create_exam_type(self, payload):
        return self._mutate('create_exam_type', payload)

    def update_exam_type(self, exam_type_id, payload):
        return self._mutate('update_exam_type', exam_type_id, payload)

    def delete_exam_type(self, exam_type_id):
        return self._mutate('delete_exam_type', exam_type_id)

    def add_exam_date(self, exam_type_id, payload):
        return self._mutate('add_exam_date', exam_type_id, payload)

    def update_exam_date(self, exam_date_id, payload):
        return self._mutate('update_exam_date', exam_date_id, payload)

    def delete_exam_date(self, exam_date_id):
        return self._mutate('delete_exam_date', exam_date_id)

    def set_exam_date_status(self, exam_date_id, status):
        return self._mutate('set_exam_date_status', exam_date_id, status)

    def sweep_expired_exam_dates(self):
        self._mutate('sweep_expired_exam_dates')
        return {'updated_count': 2}

    def resolve_current_organization(self, user):
        return {'id': 1, 'name': 'Demo University'}

    def list_locations(self, organization_id):
        self.calls.append(('list_locations', organization_id))
        return [LocationRef(id=1, name='Main Hall', capacity=100)]


def _loaded_type(status='upcoming', deadline=None):
    return ExamTypeRecord(
        id=5, name='General Aptitude', code_name='GCAT',
        registration_deadline=deadline,
        exam_dates=(ExamDateRecord(
            id=50, exam_type_id=5, scheduled_at=NOW + timedelta(days=10), status=status,
        ),),
    )


def _valid_draft():
    return ExamTypeDraft(
        name=' General Aptitude ', code_name='GCAT', price='150',
        registration_deadline=NOW + timedelta(days=2, seconds=30),
        exam_dates=[ExamDateDraft(date=NOW + timedelta(days=5, seconds=45), location_ids=[1, 2])],
    )


# ── Exam manager ──────────────────────────────────────────────────────────

@override_settings(TIME_ZONE='UTC')
class ExamManagerTests(SimpleTestCase):

    def make_manager(self, backend=None, organization_id=1):
        backend = backend or FakeBackend()
        return ExamManager(backend, SessionContext(organization_id, 'admin'), clock=lambda: NOW)

    def test_create_requires_organization(self):
        manager = self.make_manager(organization_id=None)
        result = manager.create_exam_type(_valid_draft())
        self.assertTrue(result.precondition_failed)
        self.assertEqual(result.error, ORGANIZATION_REQUIRED)
        self.assertEqual(result.field_errors, {})
        self.assertEqual(manager.backend.calls, [])

    def test_validation_failure_never_reaches_backend(self):
        manager = self.make_manager()
        result = manager.create_exam_type(ExamTypeDraft(name='', code_name='GCAT'))
        self.assertFalse(result.ok)
        self.assertIn('name', result.field_errors)
        self.assertEqual(manager.field_errors, result.field_errors)
        self.assertEqual(manager.backend.calls, [])

    def test_create_sends_minute_precision_payload_then_reloads(self):
        manager = self.make_manager()
        manager.field_errors = {'name': 'stale'}
        manager.error = 'stale banner'
        result = manager.create_exam_type(_valid_draft())

        self.assertTrue(result.ok)
        self.assertEqual(manager.backend.call_names(), ['create_exam_type', 'list_exams'])
        payload = manager.backend.calls[0][1]
        self.assertEqual(payload['organization_id'], 1)
        self.assertEqual(payload['name'], 'General Aptitude')
        self.assertEqual(payload['registration_deadline'], '2030-01-03T12:00')
        self.assertEqual(payload['exam_dates'], [
            {'date': '2030-01-06T12:00', 'location_ids': [1, 2], 'location': ''},
        ])
        self.assertEqual(manager.field_errors, {})
        self.assertIsNone(manager.error)

    def test_backend_failure_keeps_list_and_sets_banner(self):
        backend = FakeBackend(exam_types=[_loaded_type()])
        manager = self.make_manager(backend)
        manager.reload()
        backend.fail_with = BackendError('Exam code already in use', status_code=422)

        result = manager.delete_exam_type(5)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, 'Exam code already in use')
        self.assertEqual(manager.error, 'Exam code already in use')
        self.assertEqual(len(manager.exam_types), 1)
        # No reload after a failed call
        self.assertEqual(backend.call_names(), ['list_exams', 'delete_exam_type'])

    def test_describe_error_fallbacks(self):
        self.assertEqual(describe_error(BackendError('Server says no')), 'Server says no')
        self.assertEqual(describe_error(ValueError('socket closed')), 'socket closed')
        self.assertEqual(describe_error(BackendError()), GENERIC_ERROR)

    def test_submitting_gate(self):
        manager = self.make_manager()
        manager.submitting = True
        result = manager.delete_exam_date(50)
        self.assertTrue(result.skipped)
        self.assertEqual(manager.backend.calls, [])

    def test_submitting_cleared_after_failure(self):
        manager = self.make_manager(FakeBackend(fail_with=BackendError('down')))
        manager.delete_exam_date(50)
        self.assertFalse(manager.submitting)

    def test_illegal_status_change_rejected_locally(self):
        backend = FakeBackend(exam_types=[_loaded_type(status='cancelled')])
        manager = self.make_manager(backend)
        manager.reload()
        result = manager.change_exam_date_status(50, 'completed')
        self.assertFalse(result.ok)
        self.assertIn('status', result.field_errors)
        self.assertNotIn('set_exam_date_status', backend.call_names())

    def test_status_change_calls_backend(self):
        backend = FakeBackend(exam_types=[_loaded_type()])
        manager = self.make_manager(backend)
        manager.reload()
        result = manager.change_exam_date_status(50, 'completed')
        self.assertTrue(result.ok)
        self.assertIn(('set_exam_date_status', 50, 'completed'), backend.calls)

    def test_unknown_status_rejected_even_when_not_loaded(self):
        manager = self.make_manager()
        result = manager.change_exam_date_status(99, 'archived')
        self.assertIn('status', result.field_errors)
        self.assertEqual(manager.backend.calls, [])

    def test_add_date_checks_parent_deadline(self):
        backend = FakeBackend(exam_types=[_loaded_type(deadline=NOW + timedelta(days=7))])
        manager = self.make_manager(backend)
        manager.reload()
        result = manager.add_exam_date(5, ExamDateDraft(date=NOW + timedelta(days=6), location_ids=[1]))
        self.assertEqual(result.field_errors, {'date': DATE_BEFORE_DEADLINE})

        result = manager.add_exam_date(5, ExamDateDraft(date=NOW + timedelta(days=8), location_ids=[1]))
        self.assertTrue(result.ok)
        self.assertEqual(backend.calls[-2][0], 'add_exam_date')

    def test_update_date_payload(self):
        manager = self.make_manager()
        result = manager.update_exam_date(50, ExamDateEditDraft(
            date='2030-01-20T09:00:59', location_ids=[3],
            registration_deadline='2030-01-10T09:00',
        ))
        self.assertTrue(result.ok)
        name, exam_date_id, payload = manager.backend.calls[0]
        self.assertEqual((name, exam_date_id), ('update_exam_date', 50))
        self.assertEqual(payload['date'], '2030-01-20T09:00')
        self.assertEqual(payload['registration_deadline'], '2030-01-10T09:00')

    def test_update_type_validates_type_fields_only(self):
        manager = self.make_manager()
        result = manager.update_exam_type(5, ExamTypeDraft(name='Renamed', code_name='GC', price='-1'))
        self.assertIn('price', result.field_errors)
        result = manager.update_exam_type(5, ExamTypeDraft(name='Renamed', code_name='GC', price=''))
        self.assertTrue(result.ok)
        self.assertEqual(manager.backend.calls[0][2]['price'], '0')

    def test_sweep_returns_count_and_reloads(self):
        manager = self.make_manager()
        result = manager.sweep_expired()
        self.assertTrue(result.ok)
        self.assertEqual(result.data, 2)
        self.assertEqual(manager.backend.call_names(), ['sweep_expired_exam_dates', 'list_exams'])

    def test_load_sweeps_then_loads(self):
        manager = self.make_manager()
        result = manager.load()
        self.assertTrue(result.ok)
        self.assertEqual(
            manager.backend.call_names(),
            ['sweep_expired_exam_dates', 'list_exams', 'list_locations'],
        )
        self.assertEqual(manager.locations[0].name, 'Main Hall')

    @override_settings(SWEEP_ON_LOAD=False)
    def test_load_without_sweep(self):
        manager = self.make_manager()
        manager.load()
        self.assertNotIn('sweep_expired_exam_dates', manager.backend.call_names())

    def test_load_survives_sweep_failure(self):
        class SweepDownBackend(FakeBackend):
            def sweep_expired_exam_dates(self):
                raise BackendError('sweep down')

        manager = self.make_manager(SweepDownBackend(exam_types=[_loaded_type()]))
        result = manager.load()
        self.assertTrue(result.ok)
        self.assertEqual(len(manager.exam_types), 1)

    def test_load_without_organization(self):
        manager = self.make_manager(organization_id=None)
        result = manager.load()
        self.assertTrue(result.precondition_failed)
        self.assertEqual(manager.backend.calls, [])

    def test_derived_views(self):
        manager = self.make_manager(FakeBackend(exam_types=[_loaded_type()]))
        manager.reload()
        self.assertEqual(len(manager.rows()), 1)
        self.assertEqual(manager.groups('gcat')[0].code_name, 'GCAT')
        self.assertEqual(manager.groups('', 'completed'), [])
        self.assertEqual(manager.summary()['upcoming'], 1)


class ReloadGuardTests(SimpleTestCase):

    def test_only_latest_ticket_is_current(self):
        guard = ReloadGuard()
        first = guard.issue()
        second = guard.issue()
        self.assertFalse(guard.is_current(first))
        self.assertTrue(guard.is_current(second))

    def test_stale_reload_is_discarded(self):
        stale = [_loaded_type(status='upcoming')]
        fresh = [_loaded_type(status='completed')]

        class OverlappingBackend(FakeBackend):
            """The first list response resolves after a second reload has started."""

            def __init__(self):
                super().__init__()
                self.responses = [stale, fresh]
                self.manager = None

            def list_exams(self, organization_id):
                response = self.responses.pop(0)
                if self.responses:
                    self.manager.reload()
                return response

        backend = OverlappingBackend()
        manager = ExamManager(backend, SessionContext(1, 'admin'), clock=lambda: NOW)
        backend.manager = manager

        self.assertFalse(manager.reload())
        self.assertEqual(manager.exam_types[0].exam_dates[0].status, 'completed')


# ── Shared database fixtures ──────────────────────────────────────────────

class CreatorTestBase(TestCase):
    """Shared test fixtures for creator tests."""

    @classmethod
    def setUpTestData(cls):
        User = get_user_model()
        cls.user = User.objects.create_user(username='admin', password='AdminPass123!')
        cls.org = Organization.objects.create(name='Demo University')
        OrganizationAdmin.objects.create(user=cls.user, organization=cls.org)
        cls.main_hall = Location.objects.create(
            organization=cls.org, location_name='Main Hall', capacity=100,
        )
        cls.hall_b = Location.objects.create(
            organization=cls.org, location_name='Hall B', capacity=50,
        )
        cls.exam_type = ExamType.objects.create(
            organization=cls.org, name='General Aptitude', code_name='GCAT',
            price=Decimal('150'),
        )
        cls.exam_date = ExamDate.objects.create(
            exam_type=cls.exam_type,
            scheduled_at=timezone.now() + timedelta(days=10),
            current_registrations=45,
        )
        ExamDateLocation.objects.create(exam_date=cls.exam_date, location=cls.main_hall, priority=1)
        ExamDateLocation.objects.create(exam_date=cls.exam_date, location=cls.hall_b, priority=2)

    def setUp(self):
        self.client = Client()
        self.client.login(username='admin', password='AdminPass123!')

    def wall(self, delta):
        return format_wall_clock(timezone.now() + delta)

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')


# ── Database backend ──────────────────────────────────────────────────────

class DatabaseExamBackendTests(CreatorTestBase):

    def test_list_exams_returns_records(self):
        records = DatabaseExamBackend(self.org.id).list_exams(self.org.id)
        self.assertEqual(len(records), 1)
        exam_date = records[0].exam_dates[0]
        self.assertEqual(exam_date.max_participants, 150)
        self.assertEqual([loc.name for loc in exam_date.locations], ['Main Hall', 'Hall B'])

    def test_service_errors_become_backend_errors(self):
        backend = DatabaseExamBackend(self.org.id)
        with self.assertRaises(BackendNotFound) as ctx:
            backend.delete_exam_type(999999)
        self.assertEqual(ctx.exception.server_message, 'Exam not found')
        self.assertEqual(ctx.exception.status_code, 404)

        backend.set_exam_date_status(self.exam_date.id, 'cancelled')
        with self.assertRaises(BackendError) as ctx:
            backend.set_exam_date_status(self.exam_date.id, 'upcoming')
        self.assertEqual(ctx.exception.status_code, 422)

    def test_manager_against_database(self):
        backend = DatabaseExamBackend(self.org.id)
        manager = ExamManager(backend, SessionContext(self.org.id, 'admin'))
        result = manager.add_exam_date(self.exam_type.id, ExamDateDraft(
            date=timezone.now() + timedelta(days=20), location_ids=[self.hall_b.id],
        ))
        self.assertTrue(result.ok)
        self.assertEqual(len(manager.exam_types[0].exam_dates), 2)


# ── Authentication tests ──────────────────────────────────────────────────

class CreatorAuthTests(TestCase):
    """Test that unauthenticated users are redirected."""

    def test_exam_list_requires_login(self):
        r = Client().get(reverse('creator:exam_list'))
        self.assertEqual(r.status_code, 302)
        self.assertIn('/login', r.url)

    def test_api_requires_login(self):
        r = Client().get(reverse('creator_api:get_exams'))
        self.assertEqual(r.status_code, 302)

    def test_login_and_logout(self):
        get_user_model().objects.create_user(username='someone', password='Secret123!')
        c = Client()
        r = c.post(reverse('login'), {'username': 'someone', 'password': 'wrong'})
        self.assertEqual(r.status_code, 200)
        self.assertContains(r, 'Invalid username or password')

        r = c.post(reverse('login'), {'username': 'someone', 'password': 'Secret123!'})
        self.assertRedirects(r, '/creator/exams/', fetch_redirect_response=False)

        r = c.get(reverse('logout'))
        self.assertRedirects(r, '/login/', fetch_redirect_response=False)

    def test_login_is_logged_once(self):
        get_user_model().objects.create_user(username='someone', password='Secret123!')
        with self.assertLogs('portal.auth', level='INFO') as logs:
            Client().post(reverse('login'), {'username': 'someone', 'password': 'Secret123!'})
        successes = [line for line in logs.output if 'LOGIN_SUCCESS' in line]
        self.assertEqual(len(successes), 1)
        self.assertIn('user=someone', successes[0])

    def test_login_redirects_only_to_local_next(self):
        get_user_model().objects.create_user(username='someone', password='Secret123!')
        credentials = {'username': 'someone', 'password': 'Secret123!'}
        for next_url in ('/\\evil.com', '//evil.com/', 'https://evil.com/creator/exams/'):
            c = Client()
            r = c.post(reverse('login'), {**credentials, 'next': next_url})
            self.assertRedirects(r, '/creator/exams/', fetch_redirect_response=False)

        r = Client().post(reverse('login'), {**credentials, 'next': '/creator/exams/?search=gcat'})
        self.assertRedirects(r, '/creator/exams/?search=gcat', fetch_redirect_response=False)

    def test_security_headers(self):
        r = Client().get(reverse('login'))
        self.assertIn("frame-ancestors 'none'", r['Content-Security-Policy'])
        self.assertEqual(r['Referrer-Policy'], 'strict-origin-when-cross-origin')
        self.assertIn('camera=()', r['Permissions-Policy'])


# ── API endpoint tests ───────────────────────────────────────────────────

class CreatorAPITests(CreatorTestBase):

    def test_get_exams(self):
        r = self.client.get(reverse('creator_api:get_exams'))
        self.assertEqual(r.status_code, 200)
        data = json.loads(r.content)['data']
        self.assertEqual(data[0]['code_name'], 'GCAT')
        self.assertEqual(data[0]['exam_dates'][0]['max_participants'], 150)

    def test_organization_and_locations(self):
        r = self.client.get(reverse('creator_api:get_organization'))
        self.assertEqual(json.loads(r.content)['data'], {'id': self.org.id, 'name': 'Demo University'})
        r = self.client.get(reverse('creator_api:get_locations'))
        names = [loc['location_name'] for loc in json.loads(r.content)['data']]
        self.assertEqual(names, ['Hall B', 'Main Hall'])

    def test_account_without_organization(self):
        get_user_model().objects.create_user(username='loner', password='Secret123!')
        c = Client()
        c.login(username='loner', password='Secret123!')
        r = c.get(reverse('creator_api:get_exams'))
        self.assertEqual(r.status_code, 403)
        self.assertEqual(json.loads(r.content)['message'], 'Organization access required')
        self.assertEqual(c.get(reverse('creator_api:get_organization')).status_code, 404)

    def test_create_exam_type(self):
        r = self.post_json(reverse('creator_api:create_exam_type'), {
            'name': 'English Proficiency', 'code_name': 'EPT', 'price': '90',
            'registration_deadline': self.wall(timedelta(days=3)),
            'exam_dates': [{'date': self.wall(timedelta(days=7)), 'location_ids': [self.hall_b.id]}],
        })
        self.assertEqual(r.status_code, 201)
        data = json.loads(r.content)['data']
        self.assertEqual(data['exam_dates'][0]['locations'][0]['location_name'], 'Hall B')
        self.assertTrue(ExamType.objects.filter(code_name='EPT').exists())

    def test_create_exam_type_validation_errors(self):
        r = self.post_json(reverse('creator_api:create_exam_type'), {
            'name': 'EPT', 'code_name': 'EPT',
            'exam_dates': [{'date': self.wall(timedelta(days=-1)), 'location_ids': []}],
        })
        self.assertEqual(r.status_code, 422)
        errors = json.loads(r.content)['errors']
        self.assertIn('exam_dates.0.date', errors)
        self.assertIn('exam_dates.0.location_ids', errors)

    def test_wrong_json_types_are_field_errors(self):
        url = reverse('creator_api:create_exam_type')
        r = self.post_json(url, {'name': 123, 'code_name': {'x': 1}})
        self.assertEqual(r.status_code, 422)
        self.assertEqual(json.loads(r.content)['errors'], {'code_name': 'Exam code is required'})

        r = self.post_json(url, {
            'name': 'EPT', 'code_name': 'EPT', 'exam_dates': [self.wall(timedelta(days=7))],
        })
        self.assertEqual(r.status_code, 422)
        self.assertEqual(
            json.loads(r.content)['errors'],
            {'exam_dates.0.date': 'Exam date is not a valid date and time'},
        )
        self.assertFalse(ExamType.objects.filter(code_name='EPT').exists())

        status_url = reverse('creator_api:set_exam_date_status', args=[self.exam_date.id])
        r = self.post_json(status_url, {'status': ['completed']})
        self.assertEqual(r.status_code, 400)
        r = self.post_json(status_url, {'status': 42})
        self.assertEqual(r.status_code, 422)
        self.assertIn('status', json.loads(r.content)['errors'])

    def test_column_limits_are_rejected(self):
        url = reverse('creator_api:create_exam_type')
        r = self.post_json(url, {'name': 'EPT', 'code_name': 'EPT', 'price': '123456789012'})
        self.assertEqual(r.status_code, 422)
        self.assertIn('price', json.loads(r.content)['errors'])

        r = self.post_json(url, {'name': 'EPT', 'code_name': 'C' * 300})
        self.assertEqual(r.status_code, 422)
        self.assertIn('code_name', json.loads(r.content)['errors'])

        r = self.post_json(reverse('creator_api:update_exam_type', args=[self.exam_type.id]), {
            'name': 'N' * 201, 'code_name': 'GCAT', 'price': '1.005',
        })
        self.assertEqual(r.status_code, 422)
        self.assertEqual(set(json.loads(r.content)['errors']), {'name', 'price'})
        self.assertEqual(ExamType.objects.count(), 1)

    def test_invalid_json_and_wrong_method(self):
        r = self.client.post(
            reverse('creator_api:create_exam_type'), data='{nope', content_type='application/json',
        )
        self.assertEqual(r.status_code, 400)
        r = self.client.get(reverse('creator_api:create_exam_type'))
        self.assertEqual(r.status_code, 405)
        r = self.client.get(reverse('creator_api:delete_exam_type', args=[self.exam_type.id]))
        self.assertEqual(r.status_code, 405)

    def test_update_exam_type_with_put(self):
        r = self.client.put(
            reverse('creator_api:update_exam_type', args=[self.exam_type.id]),
            data=json.dumps({'name': 'General Cognitive Aptitude', 'code_name': 'GCAT', 'price': '175'}),
            content_type='application/json',
        )
        self.assertEqual(r.status_code, 200)
        self.exam_type.refresh_from_db()
        self.assertEqual(self.exam_type.price, Decimal('175'))

    def test_add_and_update_exam_date(self):
        r = self.post_json(reverse('creator_api:add_exam_date', args=[self.exam_type.id]), {
            'date': self.wall(timedelta(days=30)), 'location_ids': [self.main_hall.id],
        })
        self.assertEqual(r.status_code, 201)
        new_id = json.loads(r.content)['data']['id']

        r = self.post_json(reverse('creator_api:update_exam_date', args=[new_id]), {
            'date': self.wall(timedelta(days=31)), 'location_ids': [self.hall_b.id, self.main_hall.id],
        })
        self.assertEqual(r.status_code, 200)
        locations = json.loads(r.content)['data']['locations']
        self.assertEqual([loc['id'] for loc in locations], [self.hall_b.id, self.main_hall.id])

    def test_status_endpoint(self):
        url = reverse('creator_api:set_exam_date_status', args=[self.exam_date.id])
        self.assertEqual(self.post_json(url, {}).status_code, 400)

        r = self.post_json(url, {'status': 'completed'})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(json.loads(r.content)['data']['status'], 'completed')

        r = self.post_json(url, {'status': 'cancelled'})
        self.assertEqual(r.status_code, 422)
        self.assertIn('status', json.loads(r.content)['errors'])

    def test_sweep_endpoint(self):
        ExamDate.objects.create(exam_type=self.exam_type, scheduled_at=timezone.now() - timedelta(hours=1))
        ExamDate.objects.create(exam_type=self.exam_type, scheduled_at=timezone.now() + timedelta(hours=1))
        r = self.client.post(reverse('creator_api:sweep_exam_dates'))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(json.loads(r.content)['data'], {'updated_count': 1})

    def test_delete_endpoints(self):
        r = self.client.delete(reverse('creator_api:delete_exam_date', args=[self.exam_date.id]))
        self.assertEqual(r.status_code, 200)
        r = self.client.post(reverse('creator_api:delete_exam_type', args=[self.exam_type.id]))
        self.assertEqual(r.status_code, 200)
        self.assertFalse(ExamType.objects.exists())
        r = self.client.post(reverse('creator_api:delete_exam_type', args=[self.exam_type.id]))
        self.assertEqual(r.status_code, 404)

    def test_other_organizations_exams_are_hidden(self):
        other = Organization.objects.create(name='Other University')
        foreign = ExamType.objects.create(organization=other, name='Foreign', code_name='FX')
        r = self.post_json(reverse('creator_api:update_exam_type', args=[foreign.id]), {
            'name': 'Hijacked', 'code_name': 'FX',
        })
        self.assertEqual(r.status_code, 404)

    def test_csv_export(self):
        r = self.client.get(reverse('creator_api:export_exam_dates_csv'))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r['Content-Type'], 'text/csv')
        lines = r.content.decode().strip().splitlines()
        self.assertTrue(lines[0].startswith('Exam,Code'))
        self.assertIn('Main Hall, Hall B', lines[1])
        self.assertTrue(lines[1].endswith(',45,150,30'))

    def test_xlsx_export(self):
        r = self.client.get(reverse('creator_api:export_exam_dates_xlsx'), {'search': 'gcat'})
        self.assertEqual(r.status_code, 200)
        self.assertIn('spreadsheetml', r['Content-Type'])
        self.assertIn('attachment;', r['Content-Disposition'])

    def test_xlsx_highlight_follows_fill_tier(self):
        from openpyxl import load_workbook

        big_hall = Location.objects.create(
            organization=self.org, location_name='Big Hall', capacity=200,
        )
        exam_type = ExamType.objects.create(organization=self.org, name='Fill Check', code_name='FILL')
        exam_date = ExamDate.objects.create(
            exam_type=exam_type,
            scheduled_at=timezone.now() + timedelta(days=12),
            current_registrations=179,
        )
        ExamDateLocation.objects.create(exam_date=exam_date, location=big_hall, priority=1)

        r = self.client.get(reverse('creator_api:export_exam_dates_xlsx'), {'search': 'fill'})
        ws = load_workbook(BytesIO(r.content)).active
        fill_cell = ws.cell(row=5, column=10)
        # 89.5% shows as 90 but is still a warning
        self.assertEqual(fill_cell.value, 90)
        self.assertTrue(fill_cell.fill.start_color.rgb.endswith('FFEB9C'))

    def test_pdf_export(self):
        ExamType.objects.create(organization=self.org, name='Qudurat Aptitude', code_name='QDR')
        r = self.client.get(reverse('creator_api:export_exam_dates_pdf'))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r['Content-Type'], 'application/pdf')
        self.assertTrue(r.content.startswith(b'%PDF'))


# ── Manage Exams screen ──────────────────────────────────────────────────

class ExamListViewTests(CreatorTestBase):

    def test_exam_list(self):
        r = self.client.get(reverse('creator:exam_list'))
        self.assertEqual(r.status_code, 200)
        groups = r.context['groups']
        self.assertEqual(len(groups), 1)
        self.assertEqual(groups[0].rows[0].locations_display, 'Main Hall, Hall B')
        self.assertContains(r, 'General Aptitude')
        self.assertContains(r, '45 / 150 (30%)')

    def test_search_and_status_filters(self):
        ExamType.objects.create(organization=self.org, name='English Proficiency', code_name='EPT')
        r = self.client.get(reverse('creator:exam_list'), {'search': 'ept'})
        self.assertEqual([g.code_name for g in r.context['groups']], ['EPT'])
        r = self.client.get(reverse('creator:exam_list'), {'status': 'upcoming'})
        self.assertEqual([g.code_name for g in r.context['groups']], ['GCAT'])

    def test_groups_are_paginated(self):
        for index in range(11):
            ExamType.objects.create(organization=self.org, name=f'Exam {index:02d}', code_name=f'E{index}')
        r = self.client.get(reverse('creator:exam_list'))
        self.assertEqual(len(r.context['groups']), 10)
        r = self.client.get(reverse('creator:exam_list'), {'page': 2})
        self.assertEqual(len(r.context['groups']), 2)

    def test_load_sweeps_expired_dates(self):
        past = ExamDate.objects.create(
            exam_type=self.exam_type, scheduled_at=timezone.now() - timedelta(minutes=1),
        )
        self.client.get(reverse('creator:exam_list'))
        past.refresh_from_db()
        self.assertEqual(past.status, 'completed')

    def test_account_without_organization_sees_banner(self):
        get_user_model().objects.create_user(username='loner', password='Secret123!')
        c = Client()
        c.login(username='loner', password='Secret123!')
        r = c.get(reverse('creator:exam_list'))
        self.assertEqual(r.status_code, 200)
        self.assertContains(r, ORGANIZATION_REQUIRED)


class ExamActionViewTests(CreatorTestBase):

    def messages_of(self, response):
        return [str(m) for m in get_messages(response.wsgi_request)]

    def test_create_exam(self):
        r = self.client.post(reverse('creator:exam_create'), {
            'name': 'English Proficiency', 'code_name': 'EPT', 'price': '90',
            'registration_deadline': '',
            'exam_date_0': self.wall(timedelta(days=7)),
            'location_ids_0': [str(self.main_hall.id)],
            'return_search': 'ept',
        })
        self.assertEqual(r.status_code, 302)
        self.assertEqual(r['Location'], reverse('creator:exam_list') + '?search=ept')
        exam_type = ExamType.objects.get(code_name='EPT')
        self.assertEqual(exam_type.exam_dates.count(), 1)
        self.assertIn("Exam 'English Proficiency' created.", self.messages_of(r))

    def test_create_exam_with_errors(self):
        r = self.client.post(reverse('creator:exam_create'), {
            'name': '', 'code_name': 'EPT',
            'exam_date_0': self.wall(timedelta(days=7)),
        })
        self.assertEqual(r.status_code, 302)
        messages = self.messages_of(r)
        self.assertIn('Exam name is required', messages)
        self.assertIn('Select at least one location', messages)
        self.assertFalse(ExamType.objects.filter(code_name='EPT').exists())

    def test_edit_exam_type(self):
        self.client.post(reverse('creator:exam_type_edit', args=[self.exam_type.id]), {
            'name': 'GCAT Renamed', 'code_name': 'GCAT', 'price': '10', 'description': 'Updated',
        })
        self.exam_type.refresh_from_db()
        self.assertEqual(self.exam_type.name, 'GCAT Renamed')
        self.assertEqual(self.exam_type.description, 'Updated')

    def test_add_and_edit_date(self):
        self.client.post(reverse('creator:exam_date_add', args=[self.exam_type.id]), {
            'exam_date': self.wall(timedelta(days=40)), 'location_ids': [str(self.hall_b.id)],
        })
        self.assertEqual(self.exam_type.exam_dates.count(), 2)

        r = self.client.post(reverse('creator:exam_date_edit', args=[self.exam_date.id]), {
            'exam_date': self.wall(timedelta(days=12)),
            'location_ids': [str(self.hall_b.id)],
            'registration_deadline': self.wall(timedelta(days=5)),
        })
        self.assertIn('Exam date updated.', self.messages_of(r))
        self.exam_type.refresh_from_db()
        self.assertIsNotNone(self.exam_type.registration_deadline)

    def test_edit_date_after_registration_closed(self):
        closed = timezone.now() - timedelta(days=1)
        ExamType.objects.filter(pk=self.exam_type.pk).update(registration_deadline=closed)

        r = self.client.get(reverse('creator:exam_list'))
        self.assertNotContains(r, f'value="{format_wall_clock(closed)}"')
        # Current halls are pre-checked, in priority order
        content = r.content.decode()
        main_box = f'id="location_ids-edit{self.exam_date.id}-{self.main_hall.id}" checked'
        hall_b_box = f'id="location_ids-edit{self.exam_date.id}-{self.hall_b.id}" checked'
        self.assertIn(main_box, content)
        self.assertIn(hall_b_box, content)
        self.assertLess(content.index(main_box), content.index(hall_b_box))

        r = self.client.post(reverse('creator:exam_date_edit', args=[self.exam_date.id]), {
            'exam_date': self.wall(timedelta(days=11)),
            'location_ids': [str(self.main_hall.id), str(self.hall_b.id)],
            'registration_deadline': '',
        })
        self.assertIn('Exam date updated.', self.messages_of(r))
        self.exam_type.refresh_from_db()
        self.assertEqual(
            format_wall_clock(self.exam_type.registration_deadline), format_wall_clock(closed)
        )
        links = ExamDateLocation.objects.filter(exam_date=self.exam_date).order_by('priority')
        self.assertEqual([link.location_id for link in links], [self.main_hall.id, self.hall_b.id])

    def test_repeated_submit_creates_one_exam(self):
        r = self.client.get(reverse('creator:exam_list'))
        token = r.context['submission_token']
        self.assertContains(r, f'name="submission_token" value="{token}"')

        data = {
            'name': 'English Proficiency', 'code_name': 'EPT', 'price': '90',
            'exam_date_0': self.wall(timedelta(days=7)),
            'location_ids_0': [str(self.main_hall.id)],
            'submission_token': token,
        }
        first = self.client.post(reverse('creator:exam_create'), data)
        second = self.client.post(reverse('creator:exam_create'), data)
        self.assertIn("Exam 'English Proficiency' created.", self.messages_of(first))
        self.assertIn('This form was already submitted.', self.messages_of(second))
        self.assertEqual(ExamType.objects.filter(code_name='EPT').count(), 1)

    def test_status_change(self):
        url = reverse('creator:exam_date_status', args=[self.exam_date.id])
        self.client.post(url, {'status': 'cancelled'})
        self.exam_date.refresh_from_db()
        self.assertEqual(self.exam_date.status, 'cancelled')

        r = self.client.post(url, {'status': 'completed'})
        self.assertIn('Exam date is already cancelled and cannot be changed.', self.messages_of(r))
        self.exam_date.refresh_from_db()
        self.assertEqual(self.exam_date.status, 'cancelled')

        r = self.client.post(url, {'status': 'archived'})
        self.assertIn('Choose a valid status.', self.messages_of(r))

    def test_delete_date_and_type(self):
        self.client.post(reverse('creator:exam_date_delete', args=[self.exam_date.id]))
        self.assertFalse(ExamDate.objects.filter(pk=self.exam_date.pk).exists())
        self.client.post(reverse('creator:exam_type_delete', args=[self.exam_type.id]))
        self.assertFalse(ExamType.objects.filter(pk=self.exam_type.pk).exists())

    def test_delete_missing_exam_reports_error(self):
        r = self.client.post(reverse('creator:exam_type_delete', args=[999999]))
        self.assertIn('Exam not found', self.messages_of(r))

    def test_sweep(self):
        ExamDate.objects.create(exam_type=self.exam_type, scheduled_at=timezone.now() - timedelta(hours=2))
        r = self.client.post(reverse('creator:exam_sweep'))
        self.assertIn('1 expired exam date(s) marked as completed.', self.messages_of(r))

    def test_actions_require_post(self):
        r = self.client.get(reverse('creator:exam_sweep'))
        self.assertEqual(r.status_code, 405)
