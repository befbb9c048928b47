"""CSV serialization of run outcome rows."""

from __future__ import annotations

import csv
import io
from typing import Any, List, Mapping

from ..engine.conditions import as_text


def to_csv(rows: List[Mapping[str, Any]]) -> str:
    """Serialize rows to CSV text.

    The header is the key set of the first row. Every field is quoted,
    records are separated by "\\n" and there is no trailing newline. Keys
    missing from later rows render as empty fields.
    """
    if not rows:
        return ""

    header = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow([as_text(row.get(key)) for key in header])
    return buffer.getvalue().rstrip("\n")
