"""
Print job model — built from a single RabbitMQ delivery.

Two wire shapes arrive on the same queue, told apart by the message content type:
  application/pdf  — body is the document; printerId and metadata ride in the headers
  anything else    — body is JSON with tenantId, printerId, base64 payload, metadata

The shape is decided once in parse_envelope(); everything downstream only sees a Job.
"""
import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from print_relay.jobs.errors import MalformedEnvelope

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = 'application/pdf'

# Headers that identify the job rather than describe it
_ROUTING_HEADERS = ('printerId', 'tenantId', 'businessId')


@dataclass(frozen=True)
class RawDelivery:
    """Broker-agnostic view of one delivery."""
    content_type: Optional[str]
    body: bytes
    headers: dict = field(default_factory=dict)
    delivery_tag: Any = None
    message_id: Optional[str] = None


@dataclass(frozen=True)
class Job:
    tenant_id: Optional[str]    # None for binary deliveries without a tenant header
    printer_id: str
    payload: bytes
    metadata: dict = field(default_factory=dict)

    @property
    def file_name(self) -> str:
        for key in ('fileName', 'filename', 'file_name', 'name'):
            value = self.metadata.get(key)
            if value:
                return str(value)
        return ''

    def __str__(self):
        return (
            f"Job(tenant={self.tenant_id} printer={self.printer_id} "
            f"file={self.file_name!r} bytes={len(self.payload)})"
        )


@dataclass(frozen=True)
class BinaryEnvelope:
    headers: dict
    document: bytes

    def to_job(self) -> Job:
        printer_id = self.headers.get('printerId')
        if not printer_id:
            raise MalformedEnvelope("PDF delivery is missing the printerId header")
        if not self.document:
            raise MalformedEnvelope("PDF delivery has an empty body")

        metadata = {k: v for k, v in self.headers.items() if k not in _ROUTING_HEADERS}
        tenant_id = self.headers.get('tenantId') or self.headers.get('businessId') or None
        return Job(
            tenant_id=str(tenant_id) if tenant_id else None,
            printer_id=str(printer_id),
            payload=self.document,
            metadata=metadata,
        )


@dataclass(frozen=True)
class StructuredEnvelope:
    fields: dict

    def to_job(self) -> Job:
        tenant_id = self.fields.get('tenantId') or self.fields.get('businessId')
        printer_id = self.fields.get('printerId')
        payload = self.fields.get('payload') or self.fields.get('pdfContent')
        metadata = self.fields.get('metadata')

        missing = [
            name for name, value in (
                ('tenantId', tenant_id),
                ('printerId', printer_id),
                ('payload', payload),
                ('metadata', metadata),
            ) if not value
        ]
        if missing:
            raise MalformedEnvelope(f"Print Job missing required fields: {', '.join(missing)}")
        if not isinstance(metadata, dict):
            raise MalformedEnvelope(f"Print Job metadata must be an object, got {type(metadata).__name__}")
        if not isinstance(payload, str):
            raise MalformedEnvelope("Print Job payload must be a base64 string")

        return Job(
            tenant_id=str(tenant_id),
            printer_id=str(printer_id),
            payload=decode_base64_document(payload),
            metadata=dict(metadata),
        )


Envelope = Union[BinaryEnvelope, StructuredEnvelope]


def parse_envelope(delivery: RawDelivery) -> Envelope:
    """Pick the wire shape from the content type and parse the body accordingly."""
    content_type = (delivery.content_type or '').split(';', 1)[0].strip().lower()

    if content_type == PDF_CONTENT_TYPE:
        return BinaryEnvelope(headers=_normalize_headers(delivery.headers), document=delivery.body)

    try:
        data = json.loads(delivery.body.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedEnvelope(f"Could not parse print job body: {e}") from e
    if not isinstance(data, dict):
        raise MalformedEnvelope(f"Print job body must be a JSON object, got {type(data).__name__}")
    return StructuredEnvelope(fields=data)


def decode_delivery(delivery: RawDelivery) -> Job:
    return parse_envelope(delivery).to_job()


def decode_base64_document(raw: str) -> bytes:
    """Standard base64 decode, tolerating a data-URI prefix, line wrapping and stripped padding."""
    raw = raw.strip()
    if raw.startswith('data:') and ',' in raw:
        raw = raw.split(',', 1)[1]
    raw = ''.join(raw.split())
    raw += '=' * (-len(raw) % 4)
    try:
        document = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEnvelope(f"Invalid base64 payload: {e}") from e
    if not document:
        raise MalformedEnvelope("Print Job payload decodes to an empty document")
    return document


def _normalize_headers(headers: Optional[dict]) -> dict:
    # pika hands over AMQP long strings as bytes when they are not valid UTF-8
    normalized = {}
    for key, value in (headers or {}).items():
        if isinstance(value, bytes):
            value = value.decode('utf-8', errors='replace')
        normalized[str(key)] = value
    return normalized
