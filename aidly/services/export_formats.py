from typing import Iterable, Dict, Any, List, Optional
from datetime import date, datetime
from io import StringIO
import csv
import json

from ..util.timestamps import looks_like_timestamp, parse_timestamp, utc_now

def humanize_column(name: str) -> str:
    # 'first_response_at' -> 'First Response At'; existing capitals are kept
    words = name.replace("_", " ").split(" ")
    return " ".join(w[:1].upper() + w[1:] for w in words)

def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d 00:00:00")
    if isinstance(value, str) and looks_like_timestamp(value):
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed.strftime("%Y-%m-%d %H:%M:%S")
    return str(value)

def render_csv(rows: List[Dict[str, Any]], columns: Optional[Iterable[str]] = None) -> str:
    """Every field is quoted; embedded quotes are doubled."""
    rows = list(rows)
    columns = list(columns or [])
    if not columns and rows:
        columns = list(rows[0].keys())
    sio = StringIO()
    writer = csv.writer(sio, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([humanize_column(c) for c in columns])
    for r in rows:
        writer.writerow([format_cell(r.get(c)) for c in columns])
    return sio.getvalue()

def render_json(rows: List[Dict[str, Any]]) -> str:
    payload = {
        "generated_at": utc_now().isoformat() + "Z",
        "record_count": len(rows),
        "data": rows,
    }
    return json.dumps(payload, indent=4, default=str)
