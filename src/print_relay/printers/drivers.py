"""
Printer driver implementations.

Drivers are instantiated per-job from the registry entry.

Types:
  network — raw TCP socket (port 9100, JetDirect/AppSocket style)

The raw socket convention has no handshake: write the document, half-close the
write side, then wait for the printer to close the connection.
"""

import socket
import time
import logging

from print_relay.jobs.errors import (
    TransportConnectionError,
    TransportTimeout,
    UnsupportedPrinterType,
)
from print_relay.printers.registry import PrinterEntry

logger = logging.getLogger(__name__)

SOCKET_TIMEOUT = 30.0
PROBE_TIMEOUT = 5.0
RECV_CHUNK = 4096


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class PrinterDriver:
    def __init__(self, printer: PrinterEntry, timeout: float = SOCKET_TIMEOUT):
        self.printer = printer
        self.timeout = timeout

    def send(self, content: bytes, metadata: dict) -> None:
        raise NotImplementedError

    def test_connection(self) -> bool:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Raw TCP
# ---------------------------------------------------------------------------

class RawTCPDriver(PrinterDriver):
    """Streams raw bytes over a TCP socket and waits for the printer to hang up."""

    @property
    def host(self) -> str:
        return self.printer.address

    @property
    def port(self) -> int:
        return self.printer.port

    def send(self, content: bytes, metadata: dict) -> None:
        """
        Deliver one document.

        The timeout covers the whole exchange, starting at the connection attempt.

        Raises:
            TransportTimeout: deadline passed before the printer closed the connection
            TransportConnectionError: refused, unreachable, reset, or any other socket error
        """
        file_name = (metadata or {}).get('fileName', '')
        deadline = time.monotonic() + self.timeout

        def remaining() -> float:
            left = deadline - time.monotonic()
            if left <= 0:
                raise socket.timeout('print deadline exceeded')
            return left

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.settimeout(remaining())
            sock.connect((self.host, self.port))
            logger.info(f"Printing {file_name or 'document'} to {self.printer.display_name} "
                        f"({self.host}:{self.port}, {len(content)} bytes)")

            sock.settimeout(remaining())
            sock.sendall(content)
            sock.shutdown(socket.SHUT_WR)

            while True:
                sock.settimeout(remaining())
                if not sock.recv(RECV_CHUNK):
                    break
            logger.info(f"✓ Sent to {self.host}:{self.port}")
        except socket.timeout:
            logger.error(f"Timeout talking to {self.host}:{self.port}")
            raise TransportTimeout(self.host, self.port, self.timeout)
        except OSError as e:
            logger.error(f"Socket error → {self.host}:{self.port}: {e}")
            raise TransportConnectionError(self.host, self.port, e) from e
        finally:
            sock.close()

    def test_connection(self) -> bool:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.settimeout(PROBE_TIMEOUT)
                sock.connect((self.host, self.port))
            return True
        except OSError as e:
            logger.debug(f"Probe of {self.host}:{self.port} failed: {e}")
            return False


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def get_printer_driver(printer: PrinterEntry, timeout: float = SOCKET_TIMEOUT) -> PrinterDriver:
    """
    Return the correct driver for the registry entry.

    Raises:
        UnsupportedPrinterType: anything other than a network printer
    """
    if printer.connection_type == 'network':
        return RawTCPDriver(printer, timeout=timeout)
    raise UnsupportedPrinterType(printer.id, printer.connection_type)
