"""
Notification sink — one structured log record per lifecycle event, print
success or failure. Nothing in the pipeline depends on what happens here.
"""
import logging
from typing import Optional

from print_relay.logging import get_logger


class NotificationService:

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger('print_relay.notifications')

    def log_system_notification(self, message: str, **metadata):
        self.logger.info(f"System Notification: {message}{_format_metadata(metadata)}")

    def log_print_success(self, job, printer_name: str, skipped: bool = False):
        status = 'skipped (already printed)' if skipped else 'completed'
        self.logger.info(
            f"Print job {status}: {job.file_name or '<unnamed>'}"
            f"{_format_metadata({'printer': printer_name, 'tenant': job.tenant_id, 'bytes': len(job.payload)})}"
        )

    def log_print_error(self, error: BaseException, printer_id: Optional[str] = None,
                        retryable: bool = False, message_id: Optional[str] = None):
        self.logger.error(
            f"Print Error Occurred: {error}"
            f"{_format_metadata({'code': type(error).__name__, 'printer': printer_id or 'UNKNOWN', 'messageId': message_id})}"
            f"\nRetryable: {retryable}"
        )

    def log_connection_error(self, error: BaseException, service: str = 'UNKNOWN',
                             host: Optional[str] = None, retryable: bool = True):
        self.logger.error(
            f"Connection Error Occurred: {error}"
            f"{_format_metadata({'service': service, 'host': host or 'UNKNOWN'})}"
            f"\nRetryable: {retryable}"
        )

    def log_queue_error(self, error: BaseException, queue_name: Optional[str] = None,
                        message_id: Optional[str] = None, retryable: bool = False):
        self.logger.error(
            f"Queue Processing Error: {error}"
            f"{_format_metadata({'queue': queue_name or 'UNKNOWN', 'messageId': message_id or 'UNKNOWN'})}"
            f"\nRetryable: {retryable}"
        )


def _format_metadata(metadata: dict) -> str:
    pairs = [f"{key}={value}" for key, value in metadata.items() if value is not None]
    return f" ({', '.join(pairs)})" if pairs else ''
