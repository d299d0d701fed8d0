#!/usr/bin/env python3
"""
Virtual Printer — raw TCP listener that saves received print jobs to files.

Behaves like a port-9100 printer: reads until the client half-closes its write
side, stores the payload, then closes the connection, which the relay takes as
"printed". Useful for testing without a physical printer.

Usage:
    python virtual_printer.py                  # port 9100, saves to ./virtual_prints/
    python virtual_printer.py --port 9200
    python virtual_printer.py --hang           # never close — exercises the relay timeout

The saved filename encodes the timestamp and job number:
    print_job_20260222_201500_001.pdf   — PDF (detected from %PDF header)
    print_job_20260222_201500_002.bin   — anything else
"""

import argparse
import datetime
import logging
import os
import socket
import sys
import threading

logger = logging.getLogger('virtual_printer')

_job_counter = 0
_counter_lock = threading.Lock()


def _next_job_number() -> int:
    global _job_counter
    with _counter_lock:
        _job_counter += 1
        return _job_counter


def _detect_extension(data: bytes) -> str:
    if data.startswith(b'%PDF'):
        return '.pdf'
    return '.bin'


def handle_connection(conn: socket.socket, addr: tuple, output_dir: str, hang: bool = False):
    job_num = _next_job_number()
    ip, port = addr
    logger.info(f'Connection #{job_num:03d} from {ip}:{port}')

    try:
        chunks = []
        while True:
            chunk = conn.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)

        data = b''.join(chunks)
        if not data:
            logger.warning(f'Connection #{job_num:03d} — no data received')
            return

        ts = datetime.datetime.now().strftime('%Y%m%d_%H%M%S')
        filepath = os.path.join(output_dir, f'print_job_{ts}_{job_num:03d}{_detect_extension(data)}')
        with open(filepath, 'wb') as f:
            f.write(data)
        logger.info(f'Job #{job_num:03d} saved — {len(data):,} bytes → {filepath}')

        if hang:
            logger.info(f'Job #{job_num:03d} — holding connection open (--hang)')
            threading.Event().wait()
    except OSError as e:
        logger.error(f'Error handling connection #{job_num:03d}: {e}')
    finally:
        conn.close()


def start_server(port: int, output_dir: str, hang: bool = False):
    os.makedirs(output_dir, exist_ok=True)

    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

    try:
        server.bind(('0.0.0.0', port))
    except OSError as e:
        logger.error(f'Cannot bind to port {port}: {e}')
        sys.exit(1)

    server.listen(10)
    logger.info(f'Virtual Printer listening on port {port}')
    logger.info(f'Saving jobs to: {os.path.abspath(output_dir)}')

    try:
        while True:
            conn, addr = server.accept()
            threading.Thread(
                target=handle_connection,
                args=(conn, addr, output_dir, hang),
                daemon=True,
            ).start()
    except KeyboardInterrupt:
        logger.info('Stopped.')
    finally:
        server.close()


def main():
    parser = argparse.ArgumentParser(description='Virtual Printer — saves raw TCP print jobs to files')
    parser.add_argument('--port', type=int, default=9100, help='TCP port to listen on (default: 9100)')
    parser.add_argument('--output', default='virtual_prints', help='Directory to save print jobs')
    parser.add_argument('--hang', action='store_true', help='Never close connections after receiving a job')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    start_server(args.port, args.output, args.hang)


if __name__ == '__main__':
    main()
