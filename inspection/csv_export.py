from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

ITEM_COLUMNS = ['number', 'category', 'item', 'score', 'repair_cost', 'notes', 'images', 'evaluated']


def write_items_csv(path: Path,
                    rows: Iterable[Dict[str, Any]],
                    columns: Optional[List[str]] = None,
                    delimiter: str = ',') -> int:
    """Write one line per checklist item; returns the number of rows written.

    Keys outside ``columns`` are appended after it in first-seen order.
    Spreadsheet locales that use a decimal comma usually want ``delimiter=';'``.
    """
    rows = list(rows)
    headers = list(columns or ITEM_COLUMNS)
    for r in rows:
        headers.extend(k for k in r if k not in headers)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', newline='', encoding='utf-8') as f:
        w = csv.DictWriter(f, fieldnames=headers, delimiter=delimiter)
        w.writeheader()
        w.writerows(rows)
    return len(rows)
