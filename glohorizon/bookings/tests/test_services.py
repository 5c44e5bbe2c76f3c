"""Tests for the bookings services layer.

Covers:
- submit_request: reference prefix, normalized contact, first history row, validation
- transition_status: ledger row per move, timestamps, rejected moves write nothing
- update_request / update_pricing: one history row per admin update
- append_note: timestamped admin notes plus an audit row
- provide_quote / request_payment: Paystack link, status moves, notifications
- expire_stale_quotes
- Ledger consistency over random walks through both workflows
"""
import random
import re
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.db.models import F
from django.test import TestCase
from django.utils import timezone

from bookings import ledger, services
from bookings.exceptions import InvalidTransitionError, RequestValidationError
from bookings.models import BookingRequest, QuoteRequest, ServiceType, Urgency
from users.models import User

BS = BookingRequest.Status
QS = QuoteRequest.Status


def _submit(model, service_type=ServiceType.HOTEL, **kwargs):
    fields = {
        'contact_name': 'Kofi Boateng',
        'contact_email': 'kofi@example.com',
        'contact_phone': '024 123 4567',
    }
    fields.update(kwargs)
    return services.submit_request(model, service_type=service_type, **fields)


def _advance(entity, *statuses):
    for status in statuses:
        services.transition_status(entity, status, changed_by='Test Admin', notify=False)
    return entity


class ServicesSetupMixin:

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.admin = User.objects.create_staff_user(
            email='ama@glohorizonsgh.com', password='pass', first_name='Ama', last_name='Mensah',
        )
        cls.customer = User.objects.create_user(
            email='esi@example.com', password='pass', first_name='Esi', last_name='Owusu',
        )


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

class SubmitRequestTest(ServicesSetupMixin, TestCase):

    def test_hotel_quote_submission(self):
        quote = _submit(QuoteRequest)

        self.assertTrue(quote.reference_number.startswith('QHT'))
        self.assertEqual(quote.status, QS.SUBMITTED)
        self.assertEqual(quote.contact_phone, '+233241234567')
        self.assertEqual(quote.currency, 'GHS')

        history = list(quote.status_history.all())
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].from_status, QS.SUBMITTED)
        self.assertEqual(history[0].to_status, QS.SUBMITTED)
        self.assertEqual(history[0].changed_by, 'System')
        self.assertEqual(history[0].notes, 'Hotel quote request submitted')

    def test_booking_submission_links_user(self):
        booking = _submit(
            BookingRequest, ServiceType.FLIGHT,
            contact_name='', user=self.customer, urgency=Urgency.URGENT,
        )
        self.assertTrue(booking.reference_number.startswith('FL'))
        self.assertEqual(booking.user, self.customer)
        self.assertEqual(booking.contact_name, 'Esi Owusu')
        self.assertEqual(booking.urgency, Urgency.URGENT)
        self.assertEqual(booking.status_history.get().notes, 'Flight booking request submitted')
        self.assertEqual(booking.status_history.get().changed_by, 'System')

    def test_invalid_contact_rejected(self):
        with self.assertRaises(RequestValidationError) as ctx:
            _submit(QuoteRequest, contact_email='not-an-email', contact_phone='12')
        self.assertIn('contact_email', ctx.exception.message_dict)
        self.assertIn('contact_phone', ctx.exception.message_dict)
        self.assertFalse(QuoteRequest.objects.exists())

    def test_short_phone_rejected(self):
        with self.assertRaises(RequestValidationError) as ctx:
            _submit(QuoteRequest, contact_phone='12345')
        self.assertIn('contact_phone', ctx.exception.message_dict)
        self.assertFalse(QuoteRequest.objects.exists())

    def test_unknown_service_rejected(self):
        with self.assertRaises(RequestValidationError):
            _submit(QuoteRequest, service_type='CRUISE')

    def test_bad_currency_rejected(self):
        with self.assertRaises(RequestValidationError):
            _submit(QuoteRequest, currency='cedis')

    @patch('bookings.notifications.tasks.dispatch_request_notification.delay')
    def test_notification_queued_after_commit(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True):
            quote = _submit(QuoteRequest)
        mock_delay.assert_called_once_with('quote', quote.pk, 'request.submitted', {})


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

class TransitionStatusTest(ServicesSetupMixin, TestCase):

    def setUp(self):
        self.booking = _submit(BookingRequest, ServiceType.TOUR)

    def test_valid_transition_writes_history(self):
        services.transition_status(
            self.booking, BS.UNDER_REVIEW, changed_by='Ama Mensah', notes='Looking into it',
            notify=False,
        )
        self.assertEqual(self.booking.status, BS.UNDER_REVIEW)
        entry = ledger.latest_entry(self.booking)
        self.assertEqual(entry.from_status, BS.SUBMITTED)
        self.assertEqual(entry.to_status, BS.UNDER_REVIEW)
        self.assertEqual(entry.changed_by, 'Ama Mensah')
        self.assertEqual(entry.notes, 'Looking into it')

    def test_invalid_transition_writes_nothing(self):
        with self.assertRaises(InvalidTransitionError):
            services.transition_status(self.booking, BS.COMPLETED, notify=False)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, BS.SUBMITTED)
        self.assertEqual(self.booking.status_history.count(), 1)

    def test_terminal_status_is_final(self):
        services.transition_status(self.booking, BS.CANCELLED, notify=False)
        with self.assertRaises(InvalidTransitionError):
            services.transition_status(self.booking, BS.UNDER_REVIEW, notify=False)

    def test_status_timestamps(self):
        _advance(
            self.booking, BS.UNDER_REVIEW, BS.QUOTE_PROVIDED, BS.PAYMENT_PENDING, BS.PROCESSING,
        )
        self.assertIsNotNone(self.booking.paid_at)
        self.assertIsNone(self.booking.completed_at)
        _advance(self.booking, BS.CONFIRMED, BS.COMPLETED)
        self.assertIsNotNone(self.booking.completed_at)

    @patch('bookings.notifications.tasks.dispatch_request_notification.delay')
    def test_status_change_notifies_with_notes(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True):
            services.transition_status(self.booking, BS.UNDER_REVIEW, notes='On it')
        mock_delay.assert_called_once_with(
            'booking', self.booking.pk, 'status.changed', {'notes': 'On it'},
        )

    def test_history_rows_are_append_only(self):
        entry = ledger.latest_entry(self.booking)
        entry.notes = 'rewritten'
        with self.assertRaises(ValueError):
            entry.save()


# ---------------------------------------------------------------------------
# Admin updates
# ---------------------------------------------------------------------------

class UpdateRequestTest(ServicesSetupMixin, TestCase):

    def test_pricing_change_on_provided_quote(self):
        quote = _advance(_submit(QuoteRequest), QS.UNDER_REVIEW, QS.QUOTE_PROVIDED)
        QuoteRequest.objects.filter(pk=quote.pk).update(quoted_amount=Decimal('1000.00'))
        before = quote.status_history.count()

        services.update_pricing(
            quote, changed_by='Ama Mensah', quoted_amount='1200', reason='Fuel surcharge',
        )

        self.assertEqual(quote.quoted_amount, Decimal('1200.00'))
        self.assertEqual(quote.status, QS.QUOTE_PROVIDED)
        self.assertEqual(quote.status_history.count(), before + 1)
        entry = ledger.latest_entry(quote)
        self.assertEqual(entry.from_status, QS.QUOTE_PROVIDED)
        self.assertEqual(entry.to_status, QS.QUOTE_PROVIDED)
        self.assertEqual(
            entry.notes,
            'Pricing updated: Quoted: 1,000.00 GHS -> 1,200.00 GHS. Reason: Fuel surcharge',
        )

    def test_final_amount_on_quote_maps_to_quoted_amount(self):
        quote = _submit(QuoteRequest)
        services.update_pricing(quote, changed_by='Ama Mensah', final_amount='800')
        self.assertEqual(quote.quoted_amount, Decimal('800.00'))

    def test_status_and_pricing_in_one_row(self):
        booking = _advance(_submit(BookingRequest), BS.UNDER_REVIEW)
        before = booking.status_history.count()

        services.update_request(
            booking,
            changed_by='Ama Mensah',
            status=BS.QUOTE_PROVIDED,
            final_amount=Decimal('2500'),
            notes='Priced for client',
            notify=False,
        )

        self.assertEqual(booking.status, BS.QUOTE_PROVIDED)
        self.assertEqual(booking.final_amount, Decimal('2500.00'))
        self.assertEqual(booking.status_history.count(), before + 1)
        entry = ledger.latest_entry(booking)
        self.assertEqual(entry.from_status, BS.UNDER_REVIEW)
        self.assertEqual(entry.to_status, BS.QUOTE_PROVIDED)
        self.assertEqual(
            entry.notes, 'Priced for client. Pricing updated: Final: none -> 2,500.00 GHS',
        )

    def test_invalid_status_rolls_back_pricing(self):
        booking = _submit(BookingRequest)
        with self.assertRaises(InvalidTransitionError):
            services.update_request(
                booking, changed_by='Ama Mensah', status=BS.COMPLETED, quoted_amount='10',
            )
        booking.refresh_from_db()
        self.assertIsNone(booking.quoted_amount)
        self.assertEqual(booking.status_history.count(), 1)

    def test_currency_change_recorded(self):
        quote = _submit(QuoteRequest)
        services.update_pricing(quote, changed_by='Ama Mensah', currency='usd')
        self.assertEqual(quote.currency, 'USD')
        self.assertEqual(ledger.latest_entry(quote).notes, 'Pricing updated: Currency: GHS -> USD')

    def test_negative_amount_rejected(self):
        quote = _submit(QuoteRequest)
        with self.assertRaises(RequestValidationError):
            services.update_pricing(quote, changed_by='Ama Mensah', quoted_amount='-5')

    def test_nothing_to_update(self):
        quote = _submit(QuoteRequest)
        with self.assertRaises(RequestValidationError):
            services.update_request(quote, changed_by='Ama Mensah')

    def test_notes_only_row(self):
        quote = _submit(QuoteRequest)
        services.update_request(quote, changed_by='Ama Mensah', notes='Client prefers Accra-Dubai')
        entry = ledger.latest_entry(quote)
        self.assertEqual(entry.to_status, QS.SUBMITTED)
        self.assertEqual(entry.notes, 'Client prefers Accra-Dubai')


class AppendNoteTest(ServicesSetupMixin, TestCase):

    def test_notes_accumulate_with_timestamps(self):
        quote = _submit(QuoteRequest)
        author = services.actor_name(self.admin)

        services.append_note(quote, author=author, note='Called client')
        services.append_note(quote, author=author, note='Sent hotel options')

        lines = quote.admin_notes.split('\n')
        self.assertEqual(len(lines), 2)
        pattern = r'^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} UTC\] Ama Mensah: '
        self.assertRegex(lines[0], pattern + re.escape('Called client') + '$')
        self.assertRegex(lines[1], pattern + re.escape('Sent hotel options') + '$')

        entry = ledger.latest_entry(quote)
        self.assertEqual(entry.from_status, entry.to_status)
        self.assertEqual(entry.notes, 'Admin note added: Sent hotel options')
        self.assertEqual(entry.changed_by, 'Ama Mensah')

    def test_empty_note_rejected(self):
        quote = _submit(QuoteRequest)
        with self.assertRaises(RequestValidationError):
            services.append_note(quote, author='Ama Mensah', note='   ')
        self.assertEqual(quote.status_history.count(), 1)

    def test_actor_name_for_anonymous(self):
        self.assertEqual(services.actor_name(None), 'System')


# ---------------------------------------------------------------------------
# Quotes and payment links
# ---------------------------------------------------------------------------

class ProvideQuoteTest(ServicesSetupMixin, TestCase):

    def setUp(self):
        self.paystack = MagicMock()
        self.paystack.create_payment_link.return_value = 'https://checkout.paystack.com/abc123'

    @patch('bookings.notifications.tasks.dispatch_request_notification.delay')
    def test_provide_quote(self, mock_delay):
        quote = _submit(QuoteRequest)
        with self.captureOnCommitCallbacks(execute=True):
            services.provide_quote(
                quote, amount='1500', changed_by='Ama Mensah', notes='Includes breakfast',
                paystack=self.paystack,
            )

        self.assertEqual(quote.status, QS.QUOTE_PROVIDED)
        self.assertEqual(quote.quoted_amount, Decimal('1500.00'))
        self.assertEqual(quote.payment_link_url, 'https://checkout.paystack.com/abc123')
        self.assertIsNotNone(quote.quote_provided_at)
        expected_expiry = timezone.now() + timedelta(hours=72)
        self.assertLess(abs((quote.quote_expires_at - expected_expiry).total_seconds()), 60)
        self.paystack.create_payment_link.assert_called_once_with(
            quote.reference_number, Decimal('1500.00'), 'kofi@example.com', 'GHS',
        )

        transitions = [(h.from_status, h.to_status) for h in quote.status_history.all()]
        self.assertEqual(transitions, [
            (QS.SUBMITTED, QS.SUBMITTED),
            (QS.SUBMITTED, QS.UNDER_REVIEW),
            (QS.UNDER_REVIEW, QS.QUOTE_PROVIDED),
        ])
        self.assertEqual(
            ledger.latest_entry(quote).notes, 'Quote provided: 1,500.00 GHS. Includes breakfast',
        )

        mock_delay.assert_called_once()
        kind, pk, event_type, extra = mock_delay.call_args[0]
        self.assertEqual((kind, pk, event_type), ('quote', quote.pk, 'quote.provided'))
        self.assertEqual(extra['amount'], '1500.00')
        self.assertEqual(extra['payment_link'], 'https://checkout.paystack.com/abc123')

    def test_closed_quote_rejected_before_calling_paystack(self):
        quote = _submit(QuoteRequest)
        services.transition_status(quote, QS.EXPIRED, notify=False)
        with self.assertRaises(InvalidTransitionError):
            services.provide_quote(quote, amount='100', changed_by='Ama', paystack=self.paystack)
        self.paystack.create_payment_link.assert_not_called()

    def test_zero_amount_rejected(self):
        quote = _submit(QuoteRequest)
        with self.assertRaises(RequestValidationError):
            services.provide_quote(quote, amount='0', changed_by='Ama', paystack=self.paystack)


class RequestPaymentTest(ServicesSetupMixin, TestCase):

    def setUp(self):
        self.paystack = MagicMock()
        self.paystack.create_payment_link.return_value = 'https://checkout.paystack.com/bk1'

    def test_payment_link_for_priced_booking(self):
        booking = _advance(_submit(BookingRequest), BS.UNDER_REVIEW)
        services.update_request(
            booking, changed_by='Ama', status=BS.QUOTE_PROVIDED,
            quoted_amount='900', final_amount='950', notify=False,
        )

        services.request_payment(booking, changed_by='Ama', paystack=self.paystack)

        self.assertEqual(booking.status, BS.PAYMENT_PENDING)
        self.assertEqual(booking.payment_link_url, 'https://checkout.paystack.com/bk1')
        self.paystack.create_payment_link.assert_called_once_with(
            booking.reference_number, Decimal('950.00'), 'kofi@example.com', 'GHS',
        )
        self.assertEqual(
            ledger.latest_entry(booking).notes, 'Payment link issued for 950.00 GHS',
        )

    def test_unpriced_booking_rejected(self):
        booking = _advance(_submit(BookingRequest), BS.UNDER_REVIEW, BS.QUOTE_PROVIDED)
        with self.assertRaises(RequestValidationError):
            services.request_payment(booking, changed_by='Ama', paystack=self.paystack)
        self.paystack.create_payment_link.assert_not_called()


class ExpireStaleQuotesTest(ServicesSetupMixin, TestCase):

    def test_only_unpaid_past_expiry(self):
        past = timezone.now() - timedelta(hours=1)
        future = timezone.now() + timedelta(hours=1)

        stale = _advance(_submit(QuoteRequest), QS.UNDER_REVIEW, QS.QUOTE_PROVIDED)
        fresh = _advance(_submit(QuoteRequest), QS.UNDER_REVIEW, QS.QUOTE_PROVIDED)
        paid = _advance(_submit(QuoteRequest), QS.UNDER_REVIEW, QS.QUOTE_PROVIDED, QS.PAID)
        QuoteRequest.objects.filter(pk__in=[stale.pk, paid.pk]).update(quote_expires_at=past)
        QuoteRequest.objects.filter(pk=fresh.pk).update(quote_expires_at=future)

        self.assertEqual(services.expire_stale_quotes(), 1)

        for quote in (stale, fresh, paid):
            quote.refresh_from_db()
        self.assertEqual(stale.status, QS.EXPIRED)
        self.assertEqual(fresh.status, QS.QUOTE_PROVIDED)
        self.assertEqual(paid.status, QS.PAID)
        entry = ledger.latest_entry(stale)
        self.assertEqual(entry.notes, 'Quote expired without payment')
        self.assertEqual(entry.changed_by, 'System')

    def test_nothing_to_expire(self):
        self.assertEqual(services.expire_stale_quotes(), 0)


# ---------------------------------------------------------------------------
# Ledger consistency
# ---------------------------------------------------------------------------

class LedgerConsistencyTest(ServicesSetupMixin, TestCase):

    def _random_walk(self, model, rng, steps):
        entity = _submit(model, rng.choice(ServiceType.values))
        moves = 0
        for _ in range(steps):
            targets = sorted(model.workflow.allowed_targets(entity.status))
            if not targets:
                break
            if rng.random() < 0.25:
                services.record_audit(entity, changed_by='Auditor', notes='spot check')
            else:
                services.transition_status(entity, rng.choice(targets), notify=False)
                moves += 1
        return entity, moves

    def test_history_chains_up_to_current_status(self):
        rng = random.Random(20240309)
        for model in (BookingRequest, QuoteRequest):
            for _ in range(15):
                entity, moves = self._random_walk(model, rng, steps=12)
                entity.refresh_from_db()
                self.assertEqual(ledger.verify_chain(entity), [], entity.reference_number)
                transitions = entity.status_history.exclude(
                    from_status=F('to_status'),
                ).count()
                self.assertEqual(transitions, moves)

    def test_gap_detected(self):
        booking = _submit(BookingRequest)
        BookingRequest.objects.filter(pk=booking.pk).update(status=BS.PROCESSING)
        booking.refresh_from_db()
        with self.assertLogs('bookings.ledger', level='WARNING'):
            problems = ledger.verify_chain(booking)
        self.assertEqual(len(problems), 1)
