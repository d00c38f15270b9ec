"""
Core tests – scheduling engine (validation, derivation, lifecycle), models,
the exam service and management commands.
"""
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from core.models import (
    ExamDate, ExamDateLocation, ExamType, Location, Organization, OrganizationAdmin,
)
from core.scheduling import derivation, lifecycle, validation
from core.scheduling.drafts import ExamDateDraft, ExamDateEditDraft, ExamTypeDraft, coerce_ids
from core.scheduling.records import ExamDateRecord, ExamTypeRecord, LocationRef, find_exam_date
from core.scheduling.timestamps import format_wall_clock, parse_wall_clock, to_wall_clock
from core.services import ExamService, NotFound, Rejected
from core.templatetags import portal_filters

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=dt_timezone.utc)


def _type_draft(**overrides):
    data = dict(
        name='General Aptitude',
        code_name='GCAT',
        description='',
        price='150',
        registration_deadline='2030-01-10T09:00',
        exam_dates=[ExamDateDraft(date='2030-01-20T09:00', location_ids=[1])],
    )
    data.update(overrides)
    return ExamTypeDraft(**data)


def _date_record(id, at, status='upcoming', locations=(), legacy='', registrations=0, capacity=0):
    return ExamDateRecord(
        id=id, exam_type_id=1, scheduled_at=at, status=status,
        locations=tuple(locations), legacy_location=legacy,
        current_registrations=registrations, max_participants=capacity,
    )


def _type_record(id, name, dates=(), code=None):
    return ExamTypeRecord(
        id=id, name=name, code_name=code or name.upper()[:4],
        description='desc', price=Decimal('10'), exam_dates=tuple(dates),
    )


# ── Timestamps & drafts ───────────────────────────────────────────────────

@override_settings(TIME_ZONE='UTC')
class TimestampTests(SimpleTestCase):

    def test_parse_wall_clock_is_aware(self):
        parsed = parse_wall_clock('2030-01-20T09:00')
        self.assertTrue(timezone.is_aware(parsed))
        self.assertEqual(parsed, datetime(2030, 1, 20, 9, 0, tzinfo=dt_timezone.utc))

    def test_blank_is_none(self):
        self.assertIsNone(parse_wall_clock(''))
        self.assertIsNone(parse_wall_clock('   '))
        self.assertIsNone(parse_wall_clock(None))

    def test_garbage_raises(self):
        with self.assertRaises(ValueError):
            parse_wall_clock('next tuesday')

    def test_format_drops_seconds(self):
        value = datetime(2030, 1, 20, 9, 5, 42, tzinfo=dt_timezone.utc)
        self.assertEqual(format_wall_clock(value), '2030-01-20T09:05')
        self.assertEqual(to_wall_clock('2030-01-20T09:05:59'), '2030-01-20T09:05')
        self.assertIsNone(to_wall_clock(''))

    def test_coerce_ids(self):
        self.assertEqual(coerce_ids(['3', '1', '3', 'x', '']), [3, 1])
        self.assertEqual(coerce_ids('7'), [7])
        self.assertEqual(coerce_ids(None), [])


# ── Validation engine ─────────────────────────────────────────────────────

@override_settings(TIME_ZONE='UTC')
class ExamCreationValidationTests(SimpleTestCase):

    def test_valid_draft(self):
        self.assertEqual(validation.validate_exam_creation_or_edit(_type_draft(), NOW), {})

    def test_name_and_code_required_after_trim(self):
        errors = validation.validate_exam_creation_or_edit(
            _type_draft(name='   ', code_name=''), NOW
        )
        self.assertEqual(errors['name'], validation.NAME_REQUIRED)
        self.assertEqual(errors['code_name'], validation.CODE_REQUIRED)

    def test_price_rules(self):
        cases = {
            '-1': validation.PRICE_NEGATIVE,
            'abc': validation.PRICE_INVALID,
            'NaN': validation.PRICE_INVALID,
            '123456789012': validation.PRICE_TOO_LARGE,
            '100000000': validation.PRICE_TOO_LARGE,
            '1.234': validation.PRICE_PRECISION,
        }
        for price, message in cases.items():
            with self.subTest(price=price):
                errors = validation.validate_exam_creation_or_edit(_type_draft(price=price), NOW)
                self.assertEqual(errors['price'], message)
        for price in ('', '0', '12.50', '12.500', '99999999.99'):
            with self.subTest(price=price):
                errors = validation.validate_exam_creation_or_edit(_type_draft(price=price), NOW)
                self.assertNotIn('price', errors)

    def test_name_and_code_column_limits(self):
        errors = validation.validate_exam_creation_or_edit(
            _type_draft(name='N' * 201, code_name='C' * 31), NOW
        )
        self.assertEqual(errors['name'], validation.NAME_TOO_LONG)
        self.assertEqual(errors['code_name'], validation.CODE_TOO_LONG)

        errors = validation.validate_exam_creation_or_edit(
            _type_draft(name='N' * 200, code_name='C' * 30), NOW
        )
        self.assertEqual(errors, {})

    def test_payload_with_wrong_json_types(self):
        draft = ExamTypeDraft.from_payload({
            'name': 123,
            'code_name': ['GCAT'],
            'price': True,
            'exam_dates': ['2030-01-05T09:00', {'date': '2030-01-06T09:00', 'location_ids': 7.5}],
        })
        self.assertEqual(draft.name, '123')
        self.assertEqual(draft.code_name, '')
        self.assertTrue(draft.exam_dates[0].malformed)
        self.assertEqual(draft.exam_dates[1].location_ids, [])

        errors = validation.validate_exam_creation_or_edit(draft, NOW)
        self.assertEqual(errors, {
            'code_name': validation.CODE_REQUIRED,
            'price': validation.PRICE_INVALID,
            'exam_dates.0.date': validation.DATE_INVALID,
            'exam_dates.1.location_ids': validation.LOCATION_REQUIRED,
        })

    def test_past_date_is_keyed_by_index(self):
        draft = _type_draft(
            registration_deadline=None,
            exam_dates=[
                ExamDateDraft(date='2030-02-01T09:00', location_ids=[1]),
                ExamDateDraft(date='2029-12-31T09:00', location_ids=[1]),
            ],
        )
        errors = validation.validate_exam_creation_or_edit(draft, NOW)
        self.assertEqual(errors, {'exam_dates.1.date': validation.DATE_IN_PAST})

    def test_date_equal_to_now_is_rejected(self):
        draft = _type_draft(
            registration_deadline=None,
            exam_dates=[ExamDateDraft(date='2030-01-01T12:00', location_ids=[1])],
        )
        errors = validation.validate_exam_creation_or_edit(draft, NOW)
        self.assertIn('exam_dates.0.date', errors)

    def test_every_past_date_produces_an_error(self):
        draft = _type_draft(
            registration_deadline=None,
            exam_dates=[
                ExamDateDraft(date='2029-06-01T09:00', location_ids=[1]),
                ExamDateDraft(date=NOW - timedelta(minutes=1), location_ids=[1]),
            ],
        )
        errors = validation.validate_exam_creation_or_edit(draft, NOW)
        self.assertIn('exam_dates.0.date', errors)
        self.assertIn('exam_dates.1.date', errors)

    def test_unparseable_date(self):
        draft = _type_draft(exam_dates=[ExamDateDraft(date='soon', location_ids=[1])])
        errors = validation.validate_exam_creation_or_edit(draft, NOW)
        self.assertEqual(errors['exam_dates.0.date'], validation.DATE_INVALID)

    def test_date_without_locations(self):
        draft = _type_draft(exam_dates=[ExamDateDraft(date='2030-01-20T09:00', location_ids=[])])
        errors = validation.validate_exam_creation_or_edit(draft, NOW)
        self.assertEqual(errors, {'exam_dates.0.location_ids': validation.LOCATION_REQUIRED})

    def test_blank_date_rows_are_skipped(self):
        draft = _type_draft(exam_dates=[
            ExamDateDraft(date='2030-01-20T09:00', location_ids=[1]),
            ExamDateDraft(date='', location_ids=[]),
        ])
        self.assertEqual(validation.validate_exam_creation_or_edit(draft, NOW), {})

    def test_deadline_not_before_first_date(self):
        for deadline in ('2030-01-20T09:00', '2030-01-25T09:00'):
            with self.subTest(deadline=deadline):
                errors = validation.validate_exam_creation_or_edit(
                    _type_draft(registration_deadline=deadline), NOW
                )
                self.assertEqual(errors['registration_deadline'], validation.DEADLINE_AFTER_EXAM)

    def test_deadline_error_even_when_other_fields_invalid(self):
        draft = _type_draft(name='', price='-3', registration_deadline='2030-02-01T09:00')
        errors = validation.validate_exam_creation_or_edit(draft, NOW)
        self.assertIn('registration_deadline', errors)
        self.assertIn('name', errors)

    def test_deadline_compared_with_earliest_date(self):
        draft = _type_draft(
            registration_deadline='2030-01-15T09:00',
            exam_dates=[
                ExamDateDraft(date='2030-01-20T09:00', location_ids=[1]),
                ExamDateDraft(date='2030-01-12T09:00', location_ids=[2]),
            ],
        )
        errors = validation.validate_exam_creation_or_edit(draft, NOW)
        self.assertEqual(errors, {'registration_deadline': validation.DEADLINE_AFTER_EXAM})

    def test_past_deadline_reports_one_message(self):
        errors = validation.validate_exam_creation_or_edit(
            _type_draft(registration_deadline='2029-12-01T09:00'), NOW
        )
        self.assertEqual(errors, {'registration_deadline': validation.DEADLINE_IN_PAST})

    def test_deadline_without_dates_is_accepted(self):
        draft = _type_draft(exam_dates=[ExamDateDraft(date='', location_ids=[])])
        self.assertEqual(validation.validate_exam_creation_or_edit(draft, NOW), {})

    def test_accepts_datetime_values(self):
        draft = _type_draft(
            registration_deadline=NOW + timedelta(days=1),
            exam_dates=[ExamDateDraft(date=NOW + timedelta(days=2), location_ids=[1])],
        )
        self.assertEqual(validation.validate_exam_creation_or_edit(draft, NOW), {})


@override_settings(TIME_ZONE='UTC')
class ExamDateValidationTests(SimpleTestCase):

    def test_type_edit_ignores_dates(self):
        draft = _type_draft(exam_dates=[ExamDateDraft(date='2000-01-01T00:00')])
        self.assertEqual(validation.validate_exam_type_edit(draft), {})
        self.assertIn('code_name', validation.validate_exam_type_edit(_type_draft(code_name=' ')))

    def test_date_edit_requires_date_and_locations(self):
        errors = validation.validate_exam_date_edit(ExamDateEditDraft(date=''), NOW)
        self.assertEqual(errors, {
            'date': validation.DATE_REQUIRED,
            'location_ids': validation.LOCATION_REQUIRED,
        })

    def test_date_edit_deadline_must_precede_date(self):
        draft = ExamDateEditDraft(
            date='2030-01-20T09:00', location_ids=[1],
            registration_deadline='2030-01-20T09:00',
        )
        errors = validation.validate_exam_date_edit(draft, NOW)
        self.assertEqual(errors, {'registration_deadline': validation.DEADLINE_AFTER_EXAM})

    def test_date_edit_valid(self):
        draft = ExamDateEditDraft(
            date='2030-01-20T09:00', location_ids=[1],
            registration_deadline='2030-01-19T09:00',
        )
        self.assertEqual(validation.validate_exam_date_edit(draft, NOW), {})

    def test_add_date_has_no_deadline_key(self):
        errors = validation.validate_add_additional_date(
            ExamDateDraft(date='2029-01-01T09:00', location_ids=[]), NOW
        )
        self.assertEqual(set(errors), {'date', 'location_ids'})

    def test_add_date_after_parent_deadline(self):
        deadline = parse_wall_clock('2030-01-10T09:00')
        errors = validation.validate_add_additional_date(
            ExamDateDraft(date='2030-01-09T09:00', location_ids=[1]), NOW, deadline
        )
        self.assertEqual(errors, {'date': validation.DATE_BEFORE_DEADLINE})
        errors = validation.validate_add_additional_date(
            ExamDateDraft(date='2030-01-11T09:00', location_ids=[1]), NOW, deadline
        )
        self.assertEqual(errors, {})

    def test_status_change(self):
        self.assertEqual(validation.validate_status_change('upcoming', 'cancelled'), {})
        self.assertIn('status', validation.validate_status_change('completed', 'upcoming'))
        self.assertIn('status', validation.validate_status_change('upcoming', 'archived'))


# ── Status lifecycle ──────────────────────────────────────────────────────

class LifecycleTests(SimpleTestCase):

    def test_transition_table(self):
        self.assertTrue(lifecycle.can_transition('upcoming', 'completed'))
        self.assertTrue(lifecycle.can_transition('upcoming', 'cancelled'))
        for current in ('completed', 'cancelled'):
            for target in lifecycle.STATUSES:
                self.assertFalse(lifecycle.can_transition(current, target))
        self.assertFalse(lifecycle.can_transition('upcoming', 'upcoming'))

    def test_check_transition_raises(self):
        self.assertEqual(lifecycle.check_transition('upcoming', 'completed'), 'completed')
        with self.assertRaises(lifecycle.IllegalTransition) as ctx:
            lifecycle.check_transition('cancelled', 'completed')
        self.assertIsInstance(ctx.exception, ValueError)
        self.assertIn('already cancelled', str(ctx.exception))

    def test_terminal(self):
        self.assertFalse(lifecycle.is_terminal('upcoming'))
        self.assertTrue(lifecycle.is_terminal('completed'))
        self.assertTrue(lifecycle.is_terminal('cancelled'))

    def test_expiry(self):
        dates = [
            _date_record(1, NOW - timedelta(hours=1)),
            _date_record(2, NOW + timedelta(hours=1)),
            _date_record(3, NOW),
            _date_record(4, NOW - timedelta(days=3), status='cancelled'),
        ]
        self.assertEqual(lifecycle.find_expired(dates, NOW), [1, 3])


# ── Derivation engine ─────────────────────────────────────────────────────

class DerivationTests(SimpleTestCase):

    def test_format_locations_orders_by_priority(self):
        exam_date = _date_record(1, NOW, locations=[
            LocationRef(id=2, name='Hall B', capacity=50, priority=2),
            LocationRef(id=1, name='Main Hall', capacity=100, priority=1),
        ])
        self.assertEqual(derivation.format_locations(exam_date), 'Main Hall, Hall B')

    def test_format_locations_fallbacks(self):
        self.assertEqual(
            derivation.format_locations(_date_record(1, NOW, legacy='Old Gym')), 'Old Gym'
        )
        self.assertEqual(derivation.format_locations(_date_record(1, NOW)), 'TBD')

    def test_flatten_emits_placeholder(self):
        rows = derivation.flatten_to_date_rows([
            _type_record(1, 'Alpha', [_date_record(10, NOW), _date_record(11, NOW)]),
            _type_record(2, 'Beta'),
        ])
        self.assertEqual(len(rows), 3)
        placeholder = rows[-1]
        self.assertFalse(placeholder.has_date)
        self.assertIsNone(placeholder.exam_date_id)
        self.assertEqual(placeholder.exam_type_id, 2)

    def test_grouping_orders_names_case_insensitively(self):
        exam_types = [_type_record(1, 'zeta'), _type_record(2, 'Beta'), _type_record(3, 'alpha')]
        groups = derivation.group_rows_by_exam_type(derivation.flatten_to_date_rows(exam_types))
        self.assertEqual([g.name for g in groups], ['alpha', 'Beta', 'zeta'])

    def test_grouping_orders_rows_by_date(self):
        exam_types = [_type_record(1, 'GCAT', [
            _date_record(10, NOW + timedelta(days=5)),
            _date_record(11, NOW + timedelta(days=1)),
            _date_record(12, NOW + timedelta(days=3)),
        ])]
        groups = derivation.group_rows_by_exam_type(derivation.flatten_to_date_rows(exam_types))
        self.assertEqual([row.exam_date_id for row in groups[0].rows], [11, 12, 10])

    def test_derivation_is_pure(self):
        exam_types = [_type_record(1, 'GCAT', [_date_record(10, NOW)]), _type_record(2, 'EPT')]
        first = derivation.group_rows_by_exam_type(derivation.flatten_to_date_rows(exam_types))
        second = derivation.group_rows_by_exam_type(derivation.flatten_to_date_rows(exam_types))
        self.assertEqual(first, second)
        self.assertEqual(len(exam_types[0].exam_dates), 1)

    def test_fill_ratio(self):
        cases = [
            ((0, 0), 0, 'normal'),
            ((5, 0), 0, 'normal'),
            ((9, 10), 90, 'critical'),
            ((7, 10), 70, 'warning'),
            ((69, 100), 69, 'normal'),
            ((2, 3), 67, 'normal'),
            ((1, 8), 13, 'normal'),
            ((12, 10), 120, 'critical'),
            # Rounds up for display but stays below the threshold
            ((179, 200), 90, 'warning'),
            ((139, 200), 70, 'normal'),
        ]
        for (current, maximum), percentage, tier in cases:
            with self.subTest(current=current, maximum=maximum):
                ratio = derivation.compute_fill_ratio(current, maximum)
                self.assertEqual(ratio.percentage, percentage)
                self.assertEqual(ratio.tier, tier)

    def test_truncate_to_word_count(self):
        self.assertEqual(derivation.truncate_to_word_count('one two three', 3), 'one two three')
        self.assertEqual(derivation.truncate_to_word_count('one  two\tthree four', 2), 'one two...')
        self.assertEqual(derivation.truncate_to_word_count('', 5), '')
        self.assertEqual(derivation.truncate_to_word_count(None, 5), '')

    def test_filter_rows(self):
        rows = derivation.flatten_to_date_rows([
            _type_record(1, 'General Aptitude', [
                _date_record(10, NOW, status='upcoming'),
                _date_record(11, NOW, status='cancelled'),
            ], code='GCAT'),
            _type_record(2, 'English', code='EPT'),
        ])
        self.assertEqual(len(derivation.filter_rows(rows, 'gcat')), 2)
        self.assertEqual(len(derivation.filter_rows(rows, 'APTITUDE', 'cancelled')), 1)
        self.assertEqual(len(derivation.filter_rows(rows, '', 'upcoming')), 1)
        # Placeholder rows only survive the "all" filter
        self.assertEqual(len(derivation.filter_rows(rows, 'ept')), 1)
        self.assertEqual(derivation.filter_rows(rows, 'ept', 'upcoming'), [])

    def test_status_badge(self):
        self.assertEqual(derivation.status_badge('cancelled').css_class, 'badge-cancelled')
        self.assertEqual(derivation.status_badge(None).label, 'No date scheduled')

    def test_summarize(self):
        summary = derivation.summarize([
            _type_record(1, 'GCAT', [
                _date_record(10, NOW, registrations=5),
                _date_record(11, NOW, status='completed', registrations=7),
            ]),
            _type_record(2, 'EPT'),
        ])
        self.assertEqual(summary['exam_types'], 2)
        self.assertEqual(summary['exam_dates'], 2)
        self.assertEqual(summary['upcoming'], 1)
        self.assertEqual(summary['completed'], 1)
        self.assertEqual(summary['registrations'], 12)

    def test_find_exam_date(self):
        exam_types = [_type_record(1, 'GCAT', [_date_record(10, NOW)])]
        self.assertEqual(find_exam_date(exam_types, 10).id, 10)
        self.assertIsNone(find_exam_date(exam_types, 99))


class PortalFilterTests(SimpleTestCase):

    def test_filters(self):
        row = derivation.flatten_to_date_rows([
            _type_record(1, 'GCAT', [_date_record(10, NOW, registrations=8, capacity=10)])
        ])[0]
        self.assertEqual(portal_filters.fill_percentage_filter(row), 80)
        self.assertEqual(portal_filters.fill_tier_filter(row), 'warning')
        self.assertEqual(portal_filters.status_label_filter('upcoming'), 'Upcoming')
        self.assertEqual(portal_filters.status_badge_class_filter('completed'), 'badge-completed')
        self.assertEqual(portal_filters.truncate_words_to_filter('a b c', '2'), 'a b...')
        self.assertEqual(portal_filters.wall_clock_filter(None), '')

    def test_open_deadline_hides_closed_deadlines(self):
        now = timezone.now()
        self.assertEqual(portal_filters.open_deadline_filter(now - timedelta(days=1)), '')
        self.assertEqual(portal_filters.open_deadline_filter(None), '')
        upcoming = now + timedelta(days=1)
        self.assertEqual(portal_filters.open_deadline_filter(upcoming), format_wall_clock(upcoming))

    def test_hall_choices_put_selected_halls_first_in_priority_order(self):
        main = LocationRef(id=1, name='Main Hall', capacity=100)
        hall_b = LocationRef(id=2, name='Hall B', capacity=40)
        hall_c = LocationRef(id=3, name='Hall C', capacity=20)
        row = derivation.flatten_to_date_rows([_type_record(1, 'GCAT', [_date_record(
            10, NOW, locations=[
                LocationRef(id=1, name='Main Hall', priority=2),
                LocationRef(id=3, name='Hall C', priority=1),
            ],
        )])])[0]
        self.assertEqual(row.location_ids, (3, 1))

        choices = portal_filters.hall_choices_filter([main, hall_b, hall_c], row.location_ids)
        self.assertEqual(
            [(location.id, checked) for location, checked in choices],
            [(3, True), (1, True), (2, False)],
        )
        unselected = portal_filters.hall_choices_filter([main, hall_b], '')
        self.assertEqual([checked for _, checked in unselected], [False, False])


# ── Models & exam service ─────────────────────────────────────────────────

class ExamFixtureMixin:

    @classmethod
    def setUpTestData(cls):
        cls.org = Organization.objects.create(name='Demo University')
        cls.other_org = Organization.objects.create(name='Other University')
        cls.main_hall = Location.objects.create(
            organization=cls.org, location_name='Main Hall', capacity=100,
        )
        cls.hall_b = Location.objects.create(
            organization=cls.org, location_name='Hall B', capacity=40,
        )
        cls.foreign_hall = Location.objects.create(
            organization=cls.other_org, location_name='Elsewhere', capacity=10,
        )

    def make_exam_type(self, code='GCAT', name='General Aptitude', deadline=None, org=None):
        return ExamType.objects.create(
            organization=org or self.org, name=name, code_name=code,
            price=Decimal('100'), registration_deadline=deadline,
        )

    def make_exam_date(self, exam_type, at, status='upcoming', halls=()):
        exam_date = ExamDate.objects.create(exam_type=exam_type, scheduled_at=at, status=status)
        for priority, hall in enumerate(halls, start=1):
            ExamDateLocation.objects.create(exam_date=exam_date, location=hall, priority=priority)
        return exam_date


class ExamModelTests(ExamFixtureMixin, TestCase):

    def test_max_participants_sums_capacities(self):
        exam_date = self.make_exam_date(
            self.make_exam_type(), timezone.now() + timedelta(days=3),
            halls=[self.hall_b, self.main_hall],
        )
        self.assertEqual(exam_date.max_participants, 140)
        data = exam_date.to_dict()
        self.assertEqual(data['max_participants'], 140)
        self.assertEqual([loc['location_name'] for loc in data['locations']], ['Hall B', 'Main Hall'])

    def test_timestamps_set_on_save(self):
        exam_type = self.make_exam_type()
        self.assertIsNotNone(exam_type.created_at)
        self.assertIsNotNone(exam_type.updated_at)

    def test_record_from_dict(self):
        exam_type = self.make_exam_type()
        self.make_exam_date(exam_type, timezone.now() + timedelta(days=3), halls=[self.main_hall])
        record = ExamTypeRecord.from_dict(ExamService.get_exam_type(exam_type.id, self.org.id).to_dict())
        self.assertEqual(record.code_name, 'GCAT')
        self.assertEqual(record.price, Decimal('100.00'))
        self.assertEqual(record.exam_dates[0].locations[0].name, 'Main Hall')
        self.assertEqual(record.exam_dates[0].max_participants, 100)


class ExamServiceTests(ExamFixtureMixin, TestCase):

    def setUp(self):
        self.now = timezone.now()

    def _wall(self, delta):
        return format_wall_clock(self.now + delta)

    def test_create_with_dates_keeps_hall_order(self):
        exam_type = ExamService.create_exam_type(self.org.id, {
            'name': ' General Aptitude ',
            'code_name': 'GCAT',
            'price': '150.00',
            'registration_deadline': self._wall(timedelta(days=5)),
            'exam_dates': [
                {'date': self._wall(timedelta(days=10)), 'location_ids': [self.hall_b.id, self.main_hall.id]},
                {'date': '', 'location_ids': []},
            ],
        })
        self.assertEqual(exam_type.name, 'General Aptitude')
        dates = list(exam_type.exam_dates.all())
        self.assertEqual(len(dates), 1)
        links = list(dates[0].location_links.all())
        self.assertEqual([link.location_id for link in links], [self.hall_b.id, self.main_hall.id])
        self.assertEqual([link.priority for link in links], [1, 2])

    def test_create_rejects_invalid_payload(self):
        with self.assertRaises(Rejected) as ctx:
            ExamService.create_exam_type(self.org.id, {'name': '', 'code_name': 'X'})
        self.assertIn('name', ctx.exception.errors)
        self.assertEqual(ctx.exception.status_code, 422)
        self.assertFalse(ExamType.objects.exists())

    def test_create_rejects_foreign_hall(self):
        with self.assertRaises(Rejected) as ctx:
            ExamService.create_exam_type(self.org.id, {
                'name': 'GCAT', 'code_name': 'GCAT',
                'exam_dates': [{'date': self._wall(timedelta(days=3)), 'location_ids': [self.foreign_hall.id]}],
            })
        self.assertIn('exam_dates.0.location_ids', ctx.exception.errors)
        # The whole create is rolled back
        self.assertFalse(ExamType.objects.exists())

    def test_update_type_is_scoped_to_organization(self):
        foreign = self.make_exam_type(org=self.other_org)
        with self.assertRaises(NotFound):
            ExamService.update_exam_type(foreign.id, self.org.id, {'name': 'X', 'code_name': 'X'})

    def test_update_type(self):
        exam_type = self.make_exam_type()
        updated = ExamService.update_exam_type(exam_type.id, self.org.id, {
            'name': 'Renamed', 'code_name': 'GC2', 'description': 'New', 'price': '',
        })
        self.assertEqual(updated.name, 'Renamed')
        self.assertEqual(updated.price, Decimal('0'))

    def test_add_date_must_follow_deadline(self):
        exam_type = self.make_exam_type(deadline=self.now + timedelta(days=5))
        with self.assertRaises(Rejected) as ctx:
            ExamService.add_exam_date(exam_type.id, self.org.id, {
                'date': self._wall(timedelta(days=4)), 'location_ids': [self.main_hall.id],
            })
        self.assertEqual(ctx.exception.errors, {'date': validation.DATE_BEFORE_DEADLINE})

        exam_date = ExamService.add_exam_date(exam_type.id, self.org.id, {
            'date': self._wall(timedelta(days=6)), 'location_ids': [str(self.main_hall.id)],
        })
        self.assertEqual(exam_date.status, 'upcoming')
        self.assertEqual(exam_date.max_participants, 100)

    def test_update_date_moves_deadline_and_halls(self):
        exam_type = self.make_exam_type(deadline=self.now + timedelta(days=2))
        exam_date = self.make_exam_date(exam_type, self.now + timedelta(days=5), halls=[self.main_hall])
        ExamService.update_exam_date(exam_date.id, self.org.id, {
            'date': self._wall(timedelta(days=8)),
            'location_ids': [self.hall_b.id],
            'registration_deadline': self._wall(timedelta(days=6)),
        })
        exam_date.refresh_from_db()
        exam_type.refresh_from_db()
        self.assertEqual(format_wall_clock(exam_date.scheduled_at), self._wall(timedelta(days=8)))
        self.assertEqual(format_wall_clock(exam_type.registration_deadline), self._wall(timedelta(days=6)))
        self.assertEqual(list(exam_date.locations.all()), [self.hall_b])

    def test_update_date_deadline_checked_against_sibling_dates(self):
        exam_type = self.make_exam_type()
        self.make_exam_date(exam_type, self.now + timedelta(days=3), halls=[self.main_hall])
        exam_date = self.make_exam_date(exam_type, self.now + timedelta(days=10), halls=[self.main_hall])
        with self.assertRaises(Rejected) as ctx:
            ExamService.update_exam_date(exam_date.id, self.org.id, {
                'date': self._wall(timedelta(days=10)),
                'location_ids': [self.main_hall.id],
                'registration_deadline': self._wall(timedelta(days=5)),
            })
        self.assertIn('registration_deadline', ctx.exception.errors)

    def test_status_transitions_enforced(self):
        exam_date = self.make_exam_date(self.make_exam_type(), self.now + timedelta(days=3))
        ExamService.set_exam_date_status(exam_date.id, self.org.id, 'cancelled')
        exam_date.refresh_from_db()
        self.assertEqual(exam_date.status, 'cancelled')

        for target in ('upcoming', 'completed'):
            with self.subTest(target=target):
                with self.assertRaises(Rejected) as ctx:
                    ExamService.set_exam_date_status(exam_date.id, self.org.id, target)
                self.assertIn('status', ctx.exception.errors)

    def test_sweep_flips_only_expired_upcoming_dates(self):
        exam_type = self.make_exam_type()
        past = self.make_exam_date(exam_type, self.now - timedelta(hours=1))
        future = self.make_exam_date(exam_type, self.now + timedelta(hours=1))
        cancelled = self.make_exam_date(exam_type, self.now - timedelta(days=1), status='cancelled')

        result = ExamService.sweep_expired_exam_dates(now=self.now)
        self.assertEqual(result, {'updated_count': 1})
        for exam_date, status in ((past, 'completed'), (future, 'upcoming'), (cancelled, 'cancelled')):
            exam_date.refresh_from_db()
            self.assertEqual(exam_date.status, status)

    def test_delete_type_cascades(self):
        exam_type = self.make_exam_type()
        self.make_exam_date(exam_type, self.now + timedelta(days=1), halls=[self.main_hall])
        ExamService.delete_exam_type(exam_type.id, self.org.id)
        self.assertFalse(ExamDate.objects.exists())
        self.assertFalse(ExamDateLocation.objects.exists())
        # Halls survive
        self.assertTrue(Location.objects.filter(pk=self.main_hall.pk).exists())

    def test_delete_date(self):
        exam_date = self.make_exam_date(self.make_exam_type(), self.now + timedelta(days=1))
        ExamService.delete_exam_date(exam_date.id, self.org.id)
        self.assertFalse(ExamDate.objects.filter(pk=exam_date.pk).exists())
        with self.assertRaises(NotFound):
            ExamService.delete_exam_date(exam_date.id, self.org.id)

    def test_list_exams_scoped(self):
        self.make_exam_type(code='A', name='Alpha')
        self.make_exam_type(code='Z', name='Zulu', org=self.other_org)
        self.assertEqual([e.code_name for e in ExamService.list_exams(self.org.id)], ['A'])
        self.assertEqual(
            [loc.location_name for loc in ExamService.list_locations(self.org.id)],
            ['Hall B', 'Main Hall'],
        )

    def test_resolve_current_organization(self):
        User = get_user_model()
        linked = User.objects.create_user(username='linked', password='pw-12345')
        unlinked = User.objects.create_user(username='unlinked', password='pw-12345')
        OrganizationAdmin.objects.create(user=linked, organization=self.org)
        self.assertEqual(ExamService.resolve_current_organization(linked), self.org)
        self.assertIsNone(ExamService.resolve_current_organization(unlinked))

        Organization.objects.filter(pk=self.org.pk).update(is_active=False)
        self.assertIsNone(ExamService.resolve_current_organization(linked))


# ── Management commands ───────────────────────────────────────────────────

class ManagementCommandTests(ExamFixtureMixin, TestCase):

    def test_sweep_exam_dates(self):
        exam_type = self.make_exam_type()
        self.make_exam_date(exam_type, timezone.now() - timedelta(minutes=5))
        out = StringIO()
        call_command('sweep_exam_dates', stdout=out)
        self.assertIn('1 exam date(s) marked as completed', out.getvalue())
        self.assertFalse(ExamDate.objects.filter(status='upcoming').exists())

    def test_seed_demo_data_is_idempotent(self):
        call_command('seed_demo_data', stdout=StringIO())
        call_command('seed_demo_data', stdout=StringIO())
        organization = Organization.objects.get(name='Demo University')
        self.assertEqual(organization.exam_types.count(), 3)
        self.assertEqual(organization.locations.count(), 3)
        self.assertTrue(OrganizationAdmin.objects.filter(organization=organization).exists())
