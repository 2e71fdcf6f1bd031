"""
Tests for the channel senders and the sender circuit breaker
"""
from smtplib import SMTPException
from unittest.mock import MagicMock, patch

import requests
from django.core import mail
from django.test import SimpleTestCase, override_settings

from notifications.senders import (
    EmailSender,
    PushSender,
    SenderCircuitBreaker,
    SmsSender,
    build_channel_senders,
)


def provider_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    return response


class SmsSenderTestCase(SimpleTestCase):

    def setUp(self):
        self.sender = SmsSender(
            api_url='https://sms.test/api/SendSMS',
            username='user',
            password='secret',
            line_number='3000',
            enabled=True,
            timeout=4,
        )

    @patch('notifications.senders.requests.post')
    def test_successful_send(self, mock_post):
        mock_post.return_value = provider_response(payload={'RetStatus': 1, 'Value': '98765', 'StrRetStatus': 'Ok'})

        result = self.sender.send('0912 345 6789', 'Hello')

        self.assertTrue(result.success)
        self.assertEqual(result.message_id, '98765')
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], 'https://sms.test/api/SendSMS')
        self.assertEqual(kwargs['timeout'], 4)
        self.assertEqual(kwargs['json']['to'], '09123456789')
        self.assertEqual(kwargs['json']['from'], '3000')
        self.assertEqual(kwargs['json']['text'], 'Hello')

    @patch('notifications.senders.requests.post')
    def test_provider_rejection(self, mock_post):
        mock_post.return_value = provider_response(payload={'RetStatus': 0, 'StrRetStatus': 'Invalid line'})

        result = self.sender.send('09123456789', 'Hello')

        self.assertFalse(result.success)
        self.assertEqual(result.error, 'Invalid line')

    @patch('notifications.senders.requests.post')
    def test_http_error(self, mock_post):
        mock_post.return_value = provider_response(status_code=503)
        result = self.sender.send('09123456789', 'Hello')
        self.assertFalse(result.success)
        self.assertIn('503', result.error)

    @patch('notifications.senders.requests.post')
    def test_timeout_becomes_failed_result(self, mock_post):
        mock_post.side_effect = requests.Timeout('read timed out')
        result = self.sender.send('09123456789', 'Hello')
        self.assertFalse(result.success)
        self.assertIn('timed out', result.error)

    @patch('notifications.senders.requests.post')
    def test_invalid_phone_number_is_not_sent(self, mock_post):
        for phone_number in ('', None, '12345', 'not-a-number'):
            result = self.sender.send(phone_number, 'Hello')
            self.assertFalse(result.success)
        mock_post.assert_not_called()

    @patch('notifications.senders.requests.post')
    def test_disabled_sender_simulates_delivery(self, mock_post):
        sender = SmsSender(enabled=False)
        result = sender.send('+989123456789', 'Hello')
        self.assertTrue(result.success)
        self.assertTrue(result.message_id.startswith('simulated-'))
        mock_post.assert_not_called()


class EmailSenderTestCase(SimpleTestCase):

    @override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
    def test_send(self):
        result = EmailSender(from_email='billing@example.com').send(
            'customer@example.com', 'Body', subject='Payment Reminder'
        )

        self.assertTrue(result.success)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'Payment Reminder')
        self.assertEqual(mail.outbox[0].to, ['customer@example.com'])
        self.assertEqual(mail.outbox[0].from_email, 'billing@example.com')

    @patch('notifications.senders.send_mail', side_effect=SMTPException('connection refused'))
    def test_smtp_error_becomes_failed_result(self, mock_send_mail):
        result = EmailSender().send('customer@example.com', 'Body')
        self.assertFalse(result.success)
        self.assertIn('connection refused', result.error)

    def test_missing_address(self):
        self.assertFalse(EmailSender().send('', 'Body').success)


class PushSenderTestCase(SimpleTestCase):

    def test_simulated_delivery(self):
        result = PushSender().send('device-1', 'Hello')
        self.assertTrue(result.success)
        self.assertTrue(result.message_id.startswith('push-'))


class SenderCircuitBreakerTestCase(SimpleTestCase):

    def test_opens_after_threshold_and_recovers_after_timeout(self):
        breaker = SenderCircuitBreaker(failure_threshold=2, timeout=60)

        with patch('notifications.senders.time.time', return_value=1000.0):
            breaker.record_failure('SMS')
            self.assertTrue(breaker.is_available('SMS'))
            breaker.record_failure('SMS')
            self.assertFalse(breaker.is_available('SMS'))
            self.assertTrue(breaker.is_available('EMAIL'))

        with patch('notifications.senders.time.time', return_value=1059.0):
            self.assertFalse(breaker.is_available('SMS'))

        with patch('notifications.senders.time.time', return_value=1060.0):
            self.assertTrue(breaker.is_available('SMS'))

    def test_success_resets_failures(self):
        breaker = SenderCircuitBreaker(failure_threshold=2, timeout=60)
        breaker.record_failure('SMS')
        breaker.record_success('SMS')
        breaker.record_failure('SMS')
        self.assertTrue(breaker.is_available('SMS'))


class BuildChannelSendersTestCase(SimpleTestCase):

    def test_all_channels_covered(self):
        senders = build_channel_senders()
        self.assertIsInstance(senders['EMAIL'], EmailSender)
        self.assertIsInstance(senders['SMS'], SmsSender)
        self.assertIsInstance(senders['PUSH'], PushSender)
