"""
Error taxonomy for the dispatch pipeline.

Every failure a delivery can hit is one of two kinds:
  PermanentDispatchError  — redelivery can never succeed; nack without requeue
  TransientDispatchError  — the printer may come back; nack with requeue

Broker and configuration errors live outside the dispatch path and are
handled by the channel manager and the process entry point respectively.
"""
from typing import Optional


class DispatchError(Exception):
    """Base class for every error resolved into an ack/nack decision."""
    retryable = False


class PermanentDispatchError(DispatchError):
    retryable = False


class TransientDispatchError(DispatchError):
    retryable = True


class MalformedEnvelope(PermanentDispatchError):
    """Delivery body or headers could not be turned into a Job."""


class TenantMismatch(PermanentDispatchError):
    def __init__(self, expected: str, actual: str):
        super().__init__(f"Received print job for wrong business: {actual!r} (expected {expected!r})")
        self.expected = expected
        self.actual = actual


class UnknownPrinter(PermanentDispatchError):
    def __init__(self, printer_id: str):
        super().__init__(f"Printer {printer_id} not found")
        self.printer_id = printer_id


class UnsupportedPrinterType(PermanentDispatchError):
    def __init__(self, printer_id: str, connection_type: str):
        super().__init__(f"Unsupported printer type: {connection_type} (printer {printer_id})")
        self.printer_id = printer_id
        self.connection_type = connection_type


class SideStoreWriteError(PermanentDispatchError):
    def __init__(self, path, cause: Optional[BaseException] = None):
        super().__init__(f"Could not write print artifact {path}: {cause}")
        self.path = path
        self.cause = cause


class TransportTimeout(TransientDispatchError):
    def __init__(self, address: str, port: int, timeout: float):
        super().__init__(f"Print timeout after {timeout:g}s talking to {address}:{port}")
        self.address = address
        self.port = port
        self.timeout = timeout


class TransportConnectionError(TransientDispatchError):
    def __init__(self, address: str, port: int, cause: Optional[BaseException] = None):
        super().__init__(f"Printing failed on {address}:{port}: {cause}")
        self.address = address
        self.port = port
        self.cause = cause


class BrokerError(Exception):
    pass


class BrokerConnectionLost(BrokerError):
    """Connection to RabbitMQ dropped or could not be opened; retried forever."""


class BrokerSetupError(BrokerError):
    """Channel or queue setup failed; retried on the reconnect delay."""


class ConfigError(Exception):
    """Fatal configuration problem detected at startup."""
