"""
CSV decoding for place imports.
"""
import csv
import io
from typing import Dict, List, Union

from domain.errors import ValidationError


def read_csv_rows(data: Union[bytes, str]) -> List[Dict[str, str]]:
    """
    Parse CSV text into row dicts keyed by the (stripped) header.

    A header row is required. Blank lines and rows with no values are skipped;
    a UTF-8 BOM is tolerated.
    """
    text = data.decode("utf-8-sig") if isinstance(data, bytes) else data.lstrip("\ufeff")
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or not any(h and h.strip() for h in reader.fieldnames):
        raise ValidationError("CSV header row is required")

    rows: List[Dict[str, str]] = []
    for raw in reader:
        row = {
            (key or "").strip(): (value or "").strip() if isinstance(value, str) else ""
            for key, value in raw.items()
            if key is not None
        }
        if not any(row.values()):
            continue
        rows.append(row)
    return rows
