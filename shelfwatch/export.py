"""CSV export of product view rows."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from .view import EXPORT_HEADER


def write_csv(rows: Iterable[tuple[str, str, str, str]], path: str | Path) -> Path:
    """Write export rows to a UTF-8 CSV file with every field quoted.

    Returns:
        The path written.

    Raises:
        ValueError: If there are no rows to export.
    """
    rows = list(rows)
    if not rows:
        raise ValueError("選択した範囲に商品がありません。")

    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow(EXPORT_HEADER)
        writer.writerows(rows)
    return path
