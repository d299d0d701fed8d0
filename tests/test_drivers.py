import socket
import unittest
from unittest.mock import MagicMock, patch

from print_relay.jobs.errors import (
    TransportConnectionError,
    TransportTimeout,
    UnsupportedPrinterType,
)
from print_relay.printers.drivers import RawTCPDriver, get_printer_driver
from print_relay.printers.registry import PrinterEntry

from printer_fakes import FakePrinter


def entry(port, address='127.0.0.1', connection_type='network'):
    return PrinterEntry(id='printer1', display_name='Reception Printer',
                        connection_type=connection_type, address=address, port=port)


class TestRawTCPDriver(unittest.TestCase):

    def test_sends_document_and_waits_for_close(self):
        printer = FakePrinter()
        self.addCleanup(printer.close)

        RawTCPDriver(entry(printer.port), timeout=5).send(b'X' * 10000, {'fileName': 'a.pdf'})

        self.assertEqual(printer.received, [b'X' * 10000])

    def test_printer_that_never_closes_times_out(self):
        printer = FakePrinter(hang=True)
        self.addCleanup(printer.close)

        with self.assertRaises(TransportTimeout) as cm:
            RawTCPDriver(entry(printer.port), timeout=0.5).send(b'doc', {})
        self.assertTrue(cm.exception.retryable)

    def test_connection_refused_is_transient(self):
        # Grab a free port, then close it so nothing is listening
        probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        probe.bind(('127.0.0.1', 0))
        port = probe.getsockname()[1]
        probe.close()

        with self.assertRaises(TransportConnectionError) as cm:
            RawTCPDriver(entry(port), timeout=2).send(b'doc', {})
        self.assertTrue(cm.exception.retryable)

    @patch('print_relay.printers.drivers.socket.socket')
    def test_connect_timeout_closes_socket(self, mock_socket):
        sock = MagicMock()
        sock.connect.side_effect = socket.timeout('timed out')
        mock_socket.return_value = sock

        with self.assertRaises(TransportTimeout):
            RawTCPDriver(entry(9100, address='10.0.0.5'), timeout=30).send(b'doc', {})

        sock.connect.assert_called_once_with(('10.0.0.5', 9100))
        sock.sendall.assert_not_called()
        sock.close.assert_called_once()

    @patch('print_relay.printers.drivers.socket.socket')
    def test_write_error_closes_socket(self, mock_socket):
        sock = MagicMock()
        sock.sendall.side_effect = ConnectionResetError('reset by peer')
        mock_socket.return_value = sock

        with self.assertRaises(TransportConnectionError):
            RawTCPDriver(entry(9100), timeout=30).send(b'doc', {})
        sock.close.assert_called_once()

    @patch('print_relay.printers.drivers.socket.socket')
    def test_half_closes_before_waiting(self, mock_socket):
        sock = MagicMock()
        sock.recv.return_value = b''
        mock_socket.return_value = sock

        RawTCPDriver(entry(9100), timeout=30).send(b'doc', {})

        sock.sendall.assert_called_once_with(b'doc')
        sock.shutdown.assert_called_once_with(socket.SHUT_WR)
        sock.close.assert_called_once()

    def test_test_connection(self):
        printer = FakePrinter()
        self.addCleanup(printer.close)
        self.assertTrue(RawTCPDriver(entry(printer.port)).test_connection())


class TestDriverFactory(unittest.TestCase):

    def test_network_printer(self):
        driver = get_printer_driver(entry(9100), timeout=12)
        self.assertIsInstance(driver, RawTCPDriver)
        self.assertEqual(driver.timeout, 12)

    def test_unsupported_type(self):
        with self.assertRaises(UnsupportedPrinterType) as cm:
            get_printer_driver(entry(9100, connection_type='usb'))
        self.assertFalse(cm.exception.retryable)


if __name__ == '__main__':
    unittest.main()
