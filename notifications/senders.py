"""
Channel senders

Every sender implements ``send(recipient, message, subject=None) -> SendResult``
and never raises for delivery problems; the failure reason is returned so the
dispatcher can store it on the notification.
"""

import logging
import re
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

import requests
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from .models import Notification

logger = logging.getLogger(__name__)

PHONE_NUMBER_RE = re.compile(r'^\+?\d{10,15}$')


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    sent_at: datetime = field(default_factory=timezone.now)

    @classmethod
    def failed(cls, error):
        return cls(success=False, error=str(error))


class SmsSender:
    """SMS delivery through an HTTP provider (REST SendSMS endpoint)"""

    def __init__(self, api_url=None, username=None, password=None, line_number=None, enabled=None, timeout=None):
        self.api_url = api_url or getattr(settings, 'SMS_API_URL', '')
        self.username = username or getattr(settings, 'SMS_USERNAME', '')
        self.password = password or getattr(settings, 'SMS_PASSWORD', '')
        self.line_number = line_number or getattr(settings, 'SMS_LINE_NUMBER', '')
        self.enabled = getattr(settings, 'SMS_ENABLED', False) if enabled is None else enabled
        self.timeout = timeout or getattr(settings, 'NOTIFICATION_SEND_TIMEOUT', 10)

    @staticmethod
    def normalize_phone_number(phone_number):
        return re.sub(r'[\s\-()]', '', phone_number or '')

    def is_valid_phone_number(self, phone_number):
        return bool(PHONE_NUMBER_RE.match(self.normalize_phone_number(phone_number)))

    def send(self, recipient, message, subject=None) -> SendResult:
        if not self.is_valid_phone_number(recipient):
            logger.warning(f"Invalid phone number: {recipient}")
            return SendResult.failed(f"Invalid phone number: {recipient}")

        phone_number = self.normalize_phone_number(recipient)

        if not self.enabled:
            # No provider configured; behave as delivered so flows can be exercised
            logger.info(f"SMS disabled, simulating delivery to {phone_number}")
            return SendResult(success=True, message_id=f"simulated-{uuid.uuid4().hex[:12]}")

        payload = {
            'username': self.username,
            'password': self.password,
            'from': self.line_number,
            'to': phone_number,
            'text': message,
            'isFlash': False,
        }

        try:
            logger.info(f"Sending SMS to {phone_number}")
            response = requests.post(self.api_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error sending SMS to {phone_number}: {str(e)}")
            return SendResult.failed(e)

        if response.status_code != 200:
            logger.error(f"SMS provider returned HTTP {response.status_code} for {phone_number}")
            return SendResult.failed(f"SMS provider error: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            return SendResult.failed("SMS provider returned an invalid response")

        if data.get('RetStatus') != 1:
            error = data.get('StrRetStatus') or 'Unknown error'
            logger.error(f"Failed to send SMS to {phone_number}: {error}")
            return SendResult.failed(error)

        logger.info(f"SMS sent successfully to {phone_number}. Message ID: {data.get('Value')}")
        return SendResult(success=True, message_id=str(data.get('Value')))


class EmailSender:
    """Email delivery through Django's configured email backend"""

    def __init__(self, from_email=None):
        self.from_email = from_email or getattr(settings, 'DEFAULT_FROM_EMAIL', None)

    def send(self, recipient, message, subject=None) -> SendResult:
        if not recipient:
            return SendResult.failed("Missing email address")
        try:
            send_mail(subject or '', message, self.from_email, [recipient], fail_silently=False)
        except Exception as e:
            logger.exception("Failed to send email to %s", recipient)
            return SendResult.failed(e)

        logger.info(f"Email sent to {recipient}")
        return SendResult(success=True)


class PushSender:
    """Push delivery is simulated; no push provider is integrated"""

    def send(self, recipient, message, subject=None) -> SendResult:
        if not recipient:
            return SendResult.failed("Missing push recipient")
        logger.info(f"Simulated push notification to {recipient}")
        return SendResult(success=True, message_id=f"push-{uuid.uuid4().hex[:12]}")


class SenderCircuitBreaker:
    """
    Circuit breaker per channel.
    After ``failure_threshold`` consecutive failures the channel is skipped
    until ``timeout`` seconds have passed since the last failure.
    """

    def __init__(self, failure_threshold=None, timeout=None):
        self.failure_threshold = failure_threshold or getattr(settings, 'SENDER_CIRCUIT_FAILURE_THRESHOLD', 5)
        self.timeout = timeout or getattr(settings, 'SENDER_CIRCUIT_TIMEOUT', 300)
        self.failures = defaultdict(int)
        self.last_failure = {}
        self.circuit_open = {}

    def is_available(self, channel: str) -> bool:
        if not self.circuit_open.get(channel):
            return True

        time_since_failure = time.time() - self.last_failure.get(channel, 0)
        if time_since_failure >= self.timeout:
            logger.info(f"Circuit breaker timeout passed for {channel}, retrying")
            self.reset(channel)
            return True
        return False

    def record_failure(self, channel: str):
        self.failures[channel] += 1
        self.last_failure[channel] = time.time()

        if self.failures[channel] >= self.failure_threshold and not self.circuit_open.get(channel):
            self.circuit_open[channel] = True
            logger.error(
                f"Circuit breaker OPENED for {channel} after "
                f"{self.failures[channel]} failures"
            )

    def record_success(self, channel: str):
        if self.failures.get(channel):
            logger.info(f"Circuit breaker reset for {channel} after successful send")
        self.reset(channel)

    def reset(self, channel: str):
        self.failures[channel] = 0
        self.circuit_open[channel] = False


def build_channel_senders() -> Dict[str, object]:
    """Channel -> sender mapping built from settings"""
    return {
        Notification.CHANNEL_EMAIL: EmailSender(),
        Notification.CHANNEL_SMS: SmsSender(),
        Notification.CHANNEL_PUSH: PushSender(),
    }
