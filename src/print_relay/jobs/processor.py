"""
Dispatch coordinator — takes one delivery from decode to ack/nack.

    RECEIVED → DECODED → DUPLICATE_CHECKED → DISPATCHED | SKIPPED
             → ACKED | NACKED_REQUEUE | NACKED_DROP

Every delivery is settled exactly once, in dispatch(). Errors never escape:
transient failures are requeued, permanent failures and anything unexpected
are dropped (the broker dead-letters them).
"""
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from print_relay.jobs.errors import (
    DispatchError,
    PermanentDispatchError,
    TenantMismatch,
    TransientDispatchError,
)
from print_relay.jobs.models import Job, RawDelivery, decode_delivery
from print_relay.jobs.side_store import DuplicateGuard
from print_relay.printers.drivers import SOCKET_TIMEOUT, PrinterDriver, get_printer_driver
from print_relay.printers.registry import PrinterEntry, PrinterRegistry

logger = logging.getLogger(__name__)


class DispatchState(enum.Enum):
    RECEIVED = 'received'
    DECODED = 'decoded'
    DUPLICATE_CHECKED = 'duplicate_checked'
    DISPATCHED = 'dispatched'
    SKIPPED = 'skipped'
    ACKED = 'acked'
    NACKED_REQUEUE = 'nacked_requeue'
    NACKED_DROP = 'nacked_drop'


class Outcome(enum.Enum):
    ACK = 'ack'
    REQUEUE = 'requeue'
    DROP = 'drop'

    @property
    def final_state(self) -> DispatchState:
        return {
            Outcome.ACK: DispatchState.ACKED,
            Outcome.REQUEUE: DispatchState.NACKED_REQUEUE,
            Outcome.DROP: DispatchState.NACKED_DROP,
        }[self]


@dataclass
class DispatchResult:
    outcome: Outcome
    state: DispatchState
    job: Optional[Job] = None
    printer: Optional[PrinterEntry] = None
    skipped: bool = False
    error: Optional[BaseException] = None


def outcome_for(error: BaseException) -> Outcome:
    if isinstance(error, TransientDispatchError):
        return Outcome.REQUEUE
    if isinstance(error, PermanentDispatchError):
        return Outcome.DROP
    # Unclassified failures are never requeued
    return Outcome.DROP


class DispatchCoordinator:

    def __init__(self, tenant_id: str, registry: PrinterRegistry, guard: DuplicateGuard,
                 broker, notifier,
                 driver_factory: Callable[..., PrinterDriver] = get_printer_driver,
                 print_timeout: float = SOCKET_TIMEOUT,
                 queue_name: Optional[str] = None):
        """
        Args:
            tenant_id: the business this instance serves
            broker: anything with ack(delivery) and nack(delivery, requeue)
            notifier: NotificationService (or a stand-in with the same methods)
            driver_factory: builds a driver from a PrinterEntry and a timeout
        """
        self.tenant_id = tenant_id
        self.registry = registry
        self.guard = guard
        self.broker = broker
        self.notifier = notifier
        self.driver_factory = driver_factory
        self.print_timeout = print_timeout
        self.queue_name = queue_name

    def dispatch(self, delivery: RawDelivery) -> DispatchResult:
        result = DispatchResult(outcome=Outcome.DROP, state=DispatchState.RECEIVED)
        try:
            self._process(delivery, result)
            result.outcome = Outcome.ACK
        except DispatchError as e:
            result.error = e
            result.outcome = outcome_for(e)
            self._notify_failure(delivery, result)
        except Exception as e:
            logger.error(f"Unexpected error dispatching message {delivery.message_id}: {e}", exc_info=True)
            result.error = e
            result.outcome = outcome_for(e)
            self._notify_failure(delivery, result)

        self._settle(delivery, result.outcome)
        result.state = result.outcome.final_state
        # Only reported once the broker has taken the ack
        if result.outcome is Outcome.ACK:
            self._notify_success(result)
        return result

    def _process(self, delivery: RawDelivery, result: DispatchResult) -> None:
        job = decode_delivery(delivery)
        result.job = job
        result.state = DispatchState.DECODED
        logger.info(f"Processing: {job}")

        if job.tenant_id is not None and job.tenant_id != self.tenant_id:
            raise TenantMismatch(self.tenant_id, job.tenant_id)

        check = self.guard.check(job)
        result.state = DispatchState.DUPLICATE_CHECKED
        if check.already_handled:
            result.state = DispatchState.SKIPPED
            result.skipped = True
            return

        try:
            printer = self.registry.resolve(job.printer_id)
            driver = self.driver_factory(printer, timeout=self.print_timeout)
            driver.send(job.payload, job.metadata)
        except Exception:
            self.guard.discard(check.location)
            raise

        result.printer = printer
        result.state = DispatchState.DISPATCHED

    def _settle(self, delivery: RawDelivery, outcome: Outcome) -> None:
        if outcome is Outcome.ACK:
            self.broker.ack(delivery)
        elif outcome is Outcome.REQUEUE:
            self.broker.nack(delivery, requeue=True)
        else:
            self.broker.nack(delivery, requeue=False)

    def _notify_success(self, result: DispatchResult) -> None:
        if result.printer is not None:
            printer_name = result.printer.display_name
        else:
            printer_name = self._printer_name(result.job.printer_id)
        self.notifier.log_print_success(result.job, printer_name, skipped=result.skipped)

    def _notify_failure(self, delivery: RawDelivery, result: DispatchResult) -> None:
        retryable = result.outcome is Outcome.REQUEUE
        if result.job is None:
            self.notifier.log_queue_error(result.error, queue_name=self.queue_name,
                                          message_id=delivery.message_id, retryable=retryable)
        else:
            self.notifier.log_print_error(result.error, printer_id=result.job.printer_id,
                                          retryable=retryable, message_id=delivery.message_id)

    def _printer_name(self, printer_id: str) -> str:
        entry: Optional[PrinterEntry] = self.registry.get(printer_id)
        return entry.display_name if entry else printer_id
