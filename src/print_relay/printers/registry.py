"""
Static printer registry.

Loaded once from the [printers] table of the config file; read-only afterwards.

    [printers.printer1]
    name = "Reception Printer"
    connection_type = "network"
    address = "10.0.0.5"
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from print_relay.jobs.errors import UnknownPrinter

logger = logging.getLogger(__name__)

DEFAULT_PRINTER_PORT = 9100


@dataclass(frozen=True)
class PrinterEntry:
    id: str
    display_name: str
    connection_type: str = 'network'
    address: str = ''
    port: int = DEFAULT_PRINTER_PORT

    @classmethod
    def from_dict(cls, printer_id: str, data: dict) -> 'PrinterEntry':
        return cls(
            id=printer_id,
            display_name=data.get('name') or printer_id,
            connection_type=(data.get('connection_type') or 'network').lower().strip(),
            # 'ip' is the key older configs use
            address=str(data.get('address') or data.get('ip') or '').strip(),
            port=int(data.get('port') or DEFAULT_PRINTER_PORT),
        )


class PrinterRegistry:
    """Maps printer ids (or raw addresses) to connection parameters."""

    def __init__(self, entries: Optional[Dict[str, PrinterEntry]] = None):
        self._entries = dict(entries or {})

    @classmethod
    def from_config(cls, printers: dict) -> 'PrinterRegistry':
        entries = {}
        for printer_id, data in (printers or {}).items():
            entry = PrinterEntry.from_dict(printer_id, data or {})
            if not entry.address:
                logger.warning(f"Printer {printer_id} has no address configured")
            entries[printer_id] = entry
        return cls(entries)

    def get(self, printer_id: str) -> Optional[PrinterEntry]:
        return self._entries.get(printer_id)

    def resolve(self, printer_id: str) -> PrinterEntry:
        """Look up by id, falling back to a reverse lookup by network address."""
        entry = self._entries.get(printer_id)
        if entry:
            return entry
        for candidate in self._entries.values():
            if candidate.address and candidate.address == printer_id:
                return candidate
        raise UnknownPrinter(printer_id)

    def __iter__(self) -> Iterator[PrinterEntry]:
        return iter(self._entries.values())

    def __len__(self):
        return len(self._entries)

    def __contains__(self, printer_id):
        return printer_id in self._entries
