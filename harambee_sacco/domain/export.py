"""Export formatter - uniform row dicts to CSV or JSON download artifacts"""

import csv
import io
import json
from typing import Any, Dict, List, Optional, Sequence

from harambee_sacco.domain.exceptions import ValidationError
from harambee_sacco.domain.models import DownloadFormat, ExportFile
from harambee_sacco.utils.date_utils import today_iso

Row = Dict[str, Any]

LINE_TERMINATOR = "\n"

# format -> (extension, content type). "excel" is JSON text under an .xls
# name; clients depend on that pairing, it is not a spreadsheet encoder.
FORMATS = {
    DownloadFormat.CSV: ("csv", "text/csv"),
    DownloadFormat.JSON: ("json", "application/json"),
    DownloadFormat.EXCEL: ("xls", "application/vnd.ms-excel"),
}


def to_csv(rows: Sequence[Row], headers: Optional[Sequence[str]] = None) -> str:
    """
    Render rows as CSV.

    - Header comes from the first row's keys unless headers are given
    - Values containing a comma, quote or newline are quoted, quotes doubled
    - None and missing keys become empty fields
    - No rows renders as "" (no header line either)
    """
    if not rows:
        return ""

    keys = list(headers) if headers else list(rows[0].keys())
    lines = [_line(keys)]
    lines.extend(_line([_cell(row.get(key)) for key in keys]) for row in rows)
    return LINE_TERMINATOR.join(lines)


def _line(fields: Sequence[str]) -> str:
    # A lone empty field is a blank line, not ""
    if len(fields) == 1 and fields[0] == "":
        return ""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="", quoting=csv.QUOTE_MINIMAL).writerow(fields)
    return buffer.getvalue()


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def from_csv(text: str) -> List[Dict[str, str]]:
    """Parse CSV produced by to_csv back into row dicts (all values as strings)"""
    if not text:
        return []
    reader = csv.DictReader(io.StringIO(text, newline=""))
    return [dict(row) for row in reader]


def to_json(rows: Sequence[Row]) -> str:
    return json.dumps(list(rows), indent=2, ensure_ascii=False, default=str)


def build_export(download_type: str, download_format: DownloadFormat, rows: Sequence[Row]) -> ExportFile:
    """Render rows in the requested format with a dated filename"""
    try:
        extension, content_type = FORMATS[DownloadFormat(download_format)]
    except ValueError as e:
        raise ValidationError(
            f"Invalid format. Available: {', '.join(f.value for f in DownloadFormat)}"
        ) from e

    data = to_csv(rows) if download_format == DownloadFormat.CSV else to_json(rows)

    return ExportFile(
        data=data,
        filename=f"{download_type}_{today_iso()}.{extension}",
        content_type=content_type,
    )
