from __future__ import annotations

import csv
import io
from typing import Any, Iterable, Sequence


def build_csv(fieldnames: Sequence[str], rows: Iterable[dict[str, Any]], *, headers: Sequence[str] | None = None) -> str:
    """Every cell is quoted and embedded quotes are doubled."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerow(list(headers or fieldnames))
    for row in rows:
        writer.writerow(['' if row.get(name) is None else row.get(name) for name in fieldnames])
    return output.getvalue()


def export_filename(entity: str, on_date: str) -> str:
    return f'{entity}_{on_date}.csv'
