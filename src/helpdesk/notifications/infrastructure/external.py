"""
Notification External Integrations
==================================

- SMTP email sender with retry and circuit breaker
- Bounded in-process queue drained by background workers
- Email settings read from the settings table
"""

import asyncio
import smtplib
import ssl
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, AsyncContextManager, Awaitable, Callable, List, Optional

from helpdesk.core import EmailDeliveryException
from helpdesk.notifications.application import (
    IEmailSender,
    IEmailSettingsProvider,
    INotificationPublisher,
)
from helpdesk.notifications.domain import (
    EMAIL_SETTINGS_CATEGORY,
    EmailMessage,
    EmailSettings,
    NotificationEvent,
)
from helpdesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for a flaky downstream service.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class SMTPEmailSender(IEmailSender):
    """
    smtplib client with circuit breaker and retry logic.

    Port 465 uses implicit TLS, 587 upgrades with STARTTLS. The blocking
    SMTP conversation runs in a worker thread.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_base_seconds: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_seconds = retry_base_seconds
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    def _build_mime(self, settings: EmailSettings, message: EmailMessage) -> MIMEMultipart:
        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.subject
        mime["From"] = formataddr((settings.sender_name, settings.from_address))
        mime["To"] = message.to
        mime.attach(MIMEText(message.text, "plain", "utf-8"))
        mime.attach(MIMEText(message.html, "html", "utf-8"))
        return mime

    def _deliver(self, settings: EmailSettings, message: EmailMessage) -> None:
        """Blocking SMTP conversation."""
        mime = self._build_mime(settings, message)
        context = ssl.create_default_context()

        if settings.port == 465:
            server = smtplib.SMTP_SSL(settings.host, settings.port, timeout=self.timeout, context=context)
        else:
            server = smtplib.SMTP(settings.host, settings.port, timeout=self.timeout)

        with server:
            if settings.port == 587:
                server.starttls(context=context)
            if settings.username and settings.password:
                server.login(settings.username, settings.password)
            server.send_message(mime)

    async def send(self, settings: EmailSettings, message: EmailMessage) -> bool:
        """
        Send with exponential backoff between attempts.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._circuit_breaker.allow_request():
            logger.warning("Circuit breaker open, skipping email", extra={"recipient": message.to})
            return False

        for attempt in range(self.max_retries):
            try:
                with log_latency(logger, "smtp_send", recipient=message.to, attempt=attempt + 1):
                    await asyncio.to_thread(self._deliver, settings, message)
                self._circuit_breaker.record_success()
                return True
            except (smtplib.SMTPException, OSError) as e:
                logger.error(
                    "Email delivery failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "recipient": message.to
                    }
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_base_seconds * (2 ** attempt))

        self._circuit_breaker.record_failure()
        return False

    async def send_now(self, settings: EmailSettings, message: EmailMessage) -> None:
        """Single attempt, errors surfaced to the caller."""
        try:
            await asyncio.to_thread(self._deliver, settings, message)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryException(str(e) or type(e).__name__)


class NotificationDispatcher(INotificationPublisher):
    """
    Bounded queue of notification events drained by worker tasks.

    ``submit`` never blocks: when the queue is full the event is dropped
    with a warning. Handler errors are logged and the worker carries on.
    """

    def __init__(
        self,
        handler: Callable[[NotificationEvent], Awaitable[Any]],
        queue_size: int = 100,
        workers: int = 2,
        shutdown_timeout: float = 10.0,
    ):
        self._handler = handler
        self._queue_size = queue_size
        self._worker_count = workers
        self._shutdown_timeout = shutdown_timeout
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        if self._workers:
            logger.warning("Notification dispatcher already running")
            return
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._workers = [
            asyncio.create_task(self._work(index), name=f"notification-worker-{index}")
            for index in range(self._worker_count)
        ]
        logger.info(
            "Notification dispatcher started",
            extra={"workers": self._worker_count, "queue_size": self._queue_size}
        )

    def submit(self, event: NotificationEvent) -> bool:
        if self._queue is None:
            logger.warning("Notification dispatcher not running", extra={"kind": event.kind})
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Notification queue full, dropping event",
                extra={"kind": event.kind, "ticket_number": event.ticket.ticket_number}
            )
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Drain pending events (bounded by the shutdown timeout), then stop workers."""
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self.join(), timeout=self._shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning("Notification queue not drained before shutdown", extra={"pending": self.pending})

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("Notification dispatcher stopped")

    async def _work(self, index: int) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._handler(event)
            except Exception as e:
                logger.error(
                    "Notification handler failed",
                    extra={"worker": index, "kind": event.kind, "error": str(e)}
                )
            finally:
                self._queue.task_done()


class StoredEmailSettingsProvider(IEmailSettingsProvider):
    """Reads the ``email`` settings category in its own session."""

    def __init__(self, session_factory: Callable[[], AsyncContextManager]):
        self._session_factory = session_factory

    async def load(self) -> EmailSettings:
        from helpdesk.system_settings.infrastructure.repositories import SQLAlchemySettingRepository

        async with self._session_factory() as session:
            rows = await SQLAlchemySettingRepository(session).list(category=EMAIL_SETTINGS_CATEGORY)
        return EmailSettings.from_mapping({row.key: row.value for row in rows})
