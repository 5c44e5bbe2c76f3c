"""Tests for the Paystack integration.

Covers:
- Webhook signature verification and secret handling
- charge.success queues the payment task (and runs it end to end when eager)
- charge.failed cancels bookings awaiting payment
- Unknown events, unknown references and handler crashes still answer 200
- Admin payment verification endpoint
- PaystackClient request/response handling and minor-unit conversion
"""
import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from bookings import ledger, services
from bookings.exceptions import PaymentGatewayError, TransientUpstreamError
from bookings.models import BookingRequest, QuoteRequest, ServiceType
from payments.models import ProcessedPayment
from payments.paystack import PaystackClient, from_minor_units, to_minor_units, verify_signature
from users.models import User

BS = BookingRequest.Status
QS = QuoteRequest.Status

WEBHOOK_URL = '/api/v1/payments/webhook/'
SECRET = 'sk_test_secret'


def _sign(body, secret=SECRET):
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


class WebhookSetupMixin:

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        paystack = MagicMock()
        paystack.create_payment_link.return_value = 'https://checkout.paystack.com/link'

        self.quote = services.submit_request(
            QuoteRequest, service_type=ServiceType.HOTEL, contact_name='Kofi Boateng',
            contact_email='kofi@example.com', contact_phone='0241234567',
        )
        services.provide_quote(self.quote, amount='1500', changed_by='Ama', paystack=paystack)

        self.booking = services.submit_request(
            BookingRequest, service_type=ServiceType.FLIGHT,
            contact_email='esi@example.com', contact_phone='0201234567',
        )
        services.transition_status(self.booking, BS.UNDER_REVIEW, notify=False)
        services.update_request(
            self.booking, changed_by='Ama', status=BS.QUOTE_PROVIDED, quoted_amount='900',
            notify=False,
        )
        services.request_payment(self.booking, changed_by='Ama', paystack=paystack)

    def _post(self, payload, signature=None):
        body = json.dumps(payload).encode()
        return self.client.post(
            WEBHOOK_URL, data=body, content_type='application/json',
            HTTP_X_PAYSTACK_SIGNATURE=_sign(body) if signature is None else signature,
        )


# ---------------------------------------------------------------------------
# Signature
# ---------------------------------------------------------------------------

class WebhookSignatureTest(WebhookSetupMixin, TestCase):

    def test_bad_signature_rejected(self):
        payload = {'event': 'charge.success', 'data': {'reference': self.quote.reference_number}}
        with self.assertLogs('payments.views', level='WARNING'):
            resp = self._post(payload, signature='deadbeef')
        self.assertEqual(resp.status_code, 403)

    def test_missing_signature_rejected(self):
        body = json.dumps({'event': 'charge.success', 'data': {}}).encode()
        resp = self.client.post(WEBHOOK_URL, data=body, content_type='application/json')
        self.assertEqual(resp.status_code, 403)

    @override_settings(PAYSTACK_SECRET_KEY='')
    def test_unconfigured_secret_rejects_everything(self):
        payload = {'event': 'charge.success', 'data': {'reference': self.quote.reference_number}}
        with self.assertLogs('payments.views', level='ERROR'):
            resp = self._post(payload)
        self.assertEqual(resp.status_code, 403)

    def test_signature_helper(self):
        body = b'{"event":"charge.success"}'
        self.assertTrue(verify_signature(body, _sign(body), SECRET))
        self.assertFalse(verify_signature(body, _sign(body, 'other'), SECRET))
        self.assertFalse(verify_signature(body, '', SECRET))


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

class WebhookEventTest(WebhookSetupMixin, TestCase):

    @patch('payments.tasks.process_payment_completed_task.delay')
    def test_charge_success_queues_task(self, mock_delay):
        payload = {
            'event': 'charge.success',
            'data': {
                'reference': self.quote.reference_number,
                'amount': 150000,
                'customer': {'email': 'kofi@example.com', 'phone': '+233501112222'},
            },
        }
        resp = self._post(payload)
        self.assertEqual(resp.status_code, 200)
        mock_delay.assert_called_once_with(
            self.quote.reference_number, '1500.00', '+233501112222', 'paystack_webhook',
        )

    @patch('bookings.notifications.email.ResendEmailAdapter.send', return_value='e-1')
    @patch('bookings.notifications.sms.MnotifySmsAdapter.send', return_value='s-1')
    def test_charge_success_end_to_end(self, mock_sms, mock_email):
        payload = {
            'event': 'charge.success',
            'data': {'reference': self.quote.reference_number, 'amount': 150000},
        }
        self.assertEqual(self._post(payload).status_code, 200)
        self.assertEqual(self._post(payload).status_code, 200)

        self.quote.refresh_from_db()
        self.assertEqual(self.quote.status, QS.PAID)
        self.assertEqual(ProcessedPayment.objects.filter(reference=self.quote.reference_number).count(), 1)
        self.assertEqual(mock_email.call_count, 3)
        self.assertEqual(ledger.verify_chain(self.quote), [])

    @patch('bookings.notifications.email.ResendEmailAdapter.send', return_value='e-1')
    @patch('bookings.notifications.sms.MnotifySmsAdapter.send', return_value='s-1')
    def test_checkout_phone_does_not_replace_contact_phone(self, mock_sms, mock_email):
        payload = {
            'event': 'charge.success',
            'data': {
                'reference': self.quote.reference_number,
                'amount': 150000,
                'customer': {'email': 'kofi@example.com', 'phone': '12345'},
            },
        }
        self.assertEqual(self._post(payload).status_code, 200)

        sms_targets = sorted(c.args[0] for c in mock_sms.call_args_list)
        self.assertEqual(sms_targets, ['+233200000001', '+233241234567'])

    def test_charge_failed_cancels_pending_booking(self):
        payload = {'event': 'charge.failed', 'data': {'reference': self.booking.reference_number}}
        self.assertEqual(self._post(payload).status_code, 200)

        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, BS.CANCELLED)
        entry = ledger.latest_entry(self.booking)
        self.assertEqual(entry.changed_by, 'Paystack Webhook')
        self.assertEqual(entry.notes, 'Payment failed via Paystack webhook')

    def test_charge_failed_ignored_when_not_pending(self):
        payload = {'event': 'charge.failed', 'data': {'reference': self.quote.reference_number}}
        self.assertEqual(self._post(payload).status_code, 200)
        self.quote.refresh_from_db()
        self.assertEqual(self.quote.status, QS.QUOTE_PROVIDED)

    @patch('bookings.notifications.tasks.dispatch_request_notification.delay')
    def test_charge_failed_alerts_admins(self, mock_delay):
        payload = {'event': 'charge.failed', 'data': {'reference': self.booking.reference_number}}
        with self.captureOnCommitCallbacks(execute=True):
            self.assertEqual(self._post(payload).status_code, 200)

        events = [c.args[2] for c in mock_delay.call_args_list]
        self.assertEqual(events, ['status.changed', 'admin.alert'])
        alert_extra = mock_delay.call_args_list[-1].args[3]
        self.assertEqual(alert_extra['subject'], f'Payment Failed - {self.booking.reference_number}')
        self.assertEqual(
            alert_extra['message'], 'Paystack reported a failed charge. Booking cancelled.',
        )

    @patch('bookings.notifications.email.ResendEmailAdapter.send', return_value='e-1')
    @patch('bookings.notifications.sms.MnotifySmsAdapter.send', return_value='s-1')
    def test_failed_charge_alert_reaches_admins_only(self, mock_sms, mock_email):
        payload = {'event': 'charge.failed', 'data': {'reference': self.quote.reference_number}}
        with self.captureOnCommitCallbacks(execute=True):
            self.assertEqual(self._post(payload).status_code, 200)

        email_targets = sorted(c.args[0] for c in mock_email.call_args_list)
        self.assertEqual(email_targets, ['ops@glohorizonsgh.com', 'sales@glohorizonsgh.com'])
        self.assertEqual([c.args[0] for c in mock_sms.call_args_list], ['+233200000001'])
        alert = mock_email.call_args_list[0].args[1]
        self.assertIn('Payment Failed', alert.subject)
        self.assertIn('Status left at Quote Provided.', alert.text)

    def test_charge_failed_unknown_reference(self):
        payload = {'event': 'charge.failed', 'data': {'reference': 'FL000'}}
        with self.assertLogs('payments.webhook', level='WARNING'):
            resp = self._post(payload)
        self.assertEqual(resp.status_code, 200)

    @patch('payments.tasks.process_payment_completed_task.delay')
    def test_unknown_event_acknowledged(self, mock_delay):
        payload = {'event': 'transfer.success', 'data': {'reference': self.quote.reference_number}}
        self.assertEqual(self._post(payload).status_code, 200)
        mock_delay.assert_not_called()

    def test_missing_reference_acknowledged(self):
        with self.assertLogs('payments.views', level='WARNING'):
            resp = self._post({'event': 'charge.success', 'data': {}})
        self.assertEqual(resp.status_code, 200)

    @patch('payments.views.handle_paystack_event', side_effect=RuntimeError('boom'))
    def test_handler_crash_still_200(self, _):
        payload = {'event': 'charge.success', 'data': {'reference': self.quote.reference_number}}
        with self.assertLogs('payments.views', level='ERROR'):
            resp = self._post(payload)
        self.assertEqual(resp.status_code, 200)


# ---------------------------------------------------------------------------
# Manual verification
# ---------------------------------------------------------------------------

@patch('bookings.notifications.email.ResendEmailAdapter.send', return_value='e-1')
@patch('bookings.notifications.sms.MnotifySmsAdapter.send', return_value='s-1')
class PaymentVerifyViewTest(WebhookSetupMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.admin = User.objects.create_staff_user(email='ama@glohorizonsgh.com', password='pass')
        self.client.force_authenticate(self.admin)

    def _url(self, reference):
        return f'/api/v1/payments/verify/{reference}/'

    @patch('payments.views.PaystackClient.verify_transaction')
    def test_successful_payment_processed_once(self, mock_verify, *_):
        mock_verify.return_value = {'status': 'success', 'amount': 90000, 'currency': 'GHS'}
        ref = self.booking.reference_number

        first = self.client.post(self._url(ref))
        second = self.client.post(self._url(ref))

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.data['outcome'], 'processed')
        self.assertEqual(first.data['status'], BS.PROCESSING)
        self.assertEqual(second.data['outcome'], 'duplicate')
        claim = ProcessedPayment.objects.get(reference=ref)
        self.assertEqual(claim.source, 'manual_verification')
        self.assertEqual(claim.amount, Decimal('900.00'))

    @patch('payments.views.PaystackClient.verify_transaction')
    def test_incomplete_payment_is_400(self, mock_verify, *_):
        mock_verify.return_value = {'status': 'abandoned'}
        resp = self.client.post(self._url(self.quote.reference_number))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data['gateway_status'], 'abandoned')
        self.assertFalse(ProcessedPayment.objects.exists())

    @patch('payments.views.PaystackClient.verify_transaction')
    def test_gateway_down_is_502(self, mock_verify, *_):
        mock_verify.side_effect = TransientUpstreamError('Paystack unreachable')
        resp = self.client.post(self._url(self.quote.reference_number))
        self.assertEqual(resp.status_code, 502)

    def test_unknown_reference_is_404(self, *_):
        self.assertEqual(self.client.post(self._url('QHT000')).status_code, 404)

    def test_admin_only(self, *_):
        client = APIClient()
        customer = User.objects.create_user(email='esi@example.com', password='pass')
        client.force_authenticate(customer)
        self.assertEqual(client.post(self._url(self.quote.reference_number)).status_code, 403)


# ---------------------------------------------------------------------------
# Paystack client
# ---------------------------------------------------------------------------

def _response(status_code=200, payload=None):
    response = MagicMock(status_code=status_code)
    if payload is None:
        response.json.side_effect = ValueError('no json')
    else:
        response.json.return_value = payload
    return response


@override_settings(
    PAYSTACK_SECRET_KEY=SECRET,
    PAYSTACK_BASE_URL='https://api.paystack.co',
    PAYSTACK_CALLBACK_URL='',
)
class PaystackClientTest(SimpleTestCase):

    @patch('payments.paystack.http_requests.request')
    def test_create_payment_link(self, mock_request):
        mock_request.return_value = _response(payload={
            'status': True, 'data': {'authorization_url': 'https://checkout.paystack.com/xyz'},
        })

        url = PaystackClient().create_payment_link('QHT123', Decimal('1500.50'), 'kofi@example.com', 'GHS')

        self.assertEqual(url, 'https://checkout.paystack.com/xyz')
        method, endpoint = mock_request.call_args[0]
        self.assertEqual((method, endpoint), ('POST', 'https://api.paystack.co/transaction/initialize'))
        kwargs = mock_request.call_args.kwargs
        self.assertEqual(kwargs['headers'], {'Authorization': f'Bearer {SECRET}'})
        self.assertEqual(kwargs['json']['amount'], 150050)
        self.assertEqual(kwargs['json']['reference'], 'QHT123')
        self.assertNotIn('callback_url', kwargs['json'])

    @patch('payments.paystack.http_requests.request')
    def test_rejection_is_gateway_error(self, mock_request):
        mock_request.return_value = _response(401, {'status': False, 'message': 'Invalid key'})
        with self.assertRaisesMessage(PaymentGatewayError, 'Invalid key'):
            PaystackClient().verify_transaction('QHT123')

    @patch('payments.paystack.http_requests.request')
    def test_server_error_is_transient(self, mock_request):
        mock_request.return_value = _response(502)
        with self.assertRaises(TransientUpstreamError):
            PaystackClient().verify_transaction('QHT123')

    @patch('payments.paystack.http_requests.request')
    def test_missing_checkout_url(self, mock_request):
        mock_request.return_value = _response(payload={'status': True, 'data': {}})
        with self.assertRaises(PaymentGatewayError):
            PaystackClient().create_payment_link('QHT123', '10', 'kofi@example.com')

    def test_minor_units(self):
        self.assertEqual(to_minor_units('1500.5'), 150050)
        self.assertEqual(from_minor_units(150050), Decimal('1500.50'))
