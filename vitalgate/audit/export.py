"""
Audit Export
============
Serialize audit entries for compliance exports.
"""

import csv
import io
import json
from enum import Enum
from typing import Iterable

from .models import AuditLogEntry

CSV_COLUMNS = (
    "timestamp",
    "action",
    "severity",
    "actor_id",
    "source_ip",
    "request_path",
    "method",
    "details",
    "integrity_hash",
)


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


def to_json(entries: Iterable[AuditLogEntry]) -> str:
    return json.dumps([entry.to_dict() for entry in entries], indent=2, default=str)


def to_csv(entries: Iterable[AuditLogEntry]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for entry in entries:
        writer.writerow([
            entry.timestamp.isoformat(),
            entry.action,
            entry.severity,
            entry.actor_id or "",
            entry.source_ip,
            entry.request_path,
            entry.method,
            json.dumps(entry.details, sort_keys=True, default=str) if entry.details else "",
            entry.integrity_hash,
        ])
    return buffer.getvalue()


def serialize(entries: Iterable[AuditLogEntry], fmt) -> str:
    """Serialize entries as ``json`` or ``csv``."""
    export_format = fmt if isinstance(fmt, ExportFormat) else ExportFormat(str(fmt).lower())
    if export_format == ExportFormat.CSV:
        return to_csv(entries)
    return to_json(entries)
