from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Set

import pandas as pd

logger = logging.getLogger("reportingagent.insights")

KIND_CSV = "csv"
KIND_SPREADSHEET = "spreadsheet"
KIND_PDF = "pdf"

_CANDIDATE_DELIMITERS = (",", ";", "\t", "|")


def file_kind(mime_type: str, name: str) -> Optional[str]:
    mime = (mime_type or "").lower()
    lowered = (name or "").lower()
    if "spreadsheet" in mime or "excel" in mime or lowered.endswith((".xlsx", ".xls")):
        return KIND_SPREADSHEET
    if "csv" in mime or lowered.endswith(".csv"):
        return KIND_CSV
    if "pdf" in mime or lowered.endswith(".pdf"):
        return KIND_PDF
    return None


@dataclass
class ParsedDataset:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    kind: Optional[str] = None
    delimiter: Optional[str] = None
    sheet: Optional[str] = None


class _HeaderNormalizer:
    """Normalizes and deduplicates column headers for delimited inputs."""

    def __init__(self) -> None:
        self._base_counts: Dict[str, int] = {}
        self._used: Set[str] = set()

    def _clean(self, raw: Any, index: int) -> str:
        text = "" if raw is None else str(raw)
        text = text.lstrip("\ufeff").strip()
        return text or f"column_{index + 1}"

    def _allocate(self, base: str) -> str:
        count = self._base_counts.get(base, 0)
        candidate = base if count == 0 else f"{base}_{count + 1}"
        while candidate in self._used:
            count += 1
            candidate = f"{base}_{count + 1}"
        self._base_counts[base] = count + 1
        self._used.add(candidate)
        return candidate

    def normalize(self, fieldnames: Sequence[Any]) -> List[str]:
        return [self._allocate(self._clean(name, index)) for index, name in enumerate(fieldnames)]

    def generate_default(self, index: int) -> str:
        return self._allocate(f"column_{index + 1}")


def detect_delimiter(header_line: str) -> str:
    """Pick the candidate that splits the header into the most fields; ties keep the earlier one."""
    best, best_count = ",", 0
    for delimiter in _CANDIDATE_DELIMITERS:
        count = len(header_line.split(delimiter))
        if count > best_count:
            best, best_count = delimiter, count
    return best


def parse_csv(text: str) -> ParsedDataset:
    text = text.lstrip("\ufeff")
    header_line = text.split("\n", 1)[0]
    delimiter = detect_delimiter(header_line)
    dataset = ParsedDataset(kind=KIND_CSV, delimiter=delimiter)

    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    try:
        first_row = next(reader)
    except StopIteration:
        return dataset

    normalizer = _HeaderNormalizer()
    headers = normalizer.normalize(first_row)
    for raw_row in reader:
        cells = [cell.strip() for cell in raw_row]
        if not cells or all(cell == "" for cell in cells):
            continue
        while len(headers) < len(cells):
            headers.append(normalizer.generate_default(len(headers)))
        dataset.rows.append({name: cells[index] if index < len(cells) else "" for index, name in enumerate(headers)})
    return dataset


def _clean_cell(value: Any) -> Any:
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip()
    return value


def parse_excel(body: bytes) -> ParsedDataset:
    with pd.ExcelFile(io.BytesIO(body)) as workbook:
        sheet = workbook.sheet_names[0] if workbook.sheet_names else None
        if sheet is None:
            return ParsedDataset(kind=KIND_SPREADSHEET)
        frame = workbook.parse(sheet, dtype=object)

    frame.columns = [str(col) for col in frame.columns]
    frame = frame.where(pd.notnull(frame), None)

    rows = []
    for record in frame.to_dict(orient="records"):
        cleaned = {key: _clean_cell(value) for key, value in record.items()}
        if any(value is not None and value != "" for value in cleaned.values()):
            rows.append(cleaned)
    return ParsedDataset(rows=rows, kind=KIND_SPREADSHEET, sheet=str(sheet))


class RowSource:
    """Reads stored uploads back as rows.

    Failures never propagate: an unreadable blob or a malformed file yields an
    empty dataset, which callers treat as "no data available".
    """

    def __init__(self, blobs) -> None:
        self.blobs = blobs

    def parse(self, path: str, mime_type: str) -> ParsedDataset:
        if not path:
            logger.warning("row source called without a storage path")
            return ParsedDataset()

        kind = file_kind(mime_type, path)
        if kind not in (KIND_CSV, KIND_SPREADSHEET):
            return ParsedDataset(kind=kind)

        try:
            body = self.blobs.get(path)
            if kind == KIND_CSV:
                dataset = parse_csv(body.decode("utf-8", errors="replace"))
            else:
                dataset = parse_excel(body)
        except Exception:
            logger.exception("failed to read rows", extra={"path": path, "mimeType": mime_type})
            return ParsedDataset(kind=kind)

        logger.info(
            "rows loaded",
            extra={"path": path, "rows": len(dataset.rows), "delimiter": dataset.delimiter, "sheet": dataset.sheet},
        )
        return dataset

    def read(self, path: str, mime_type: str) -> List[Dict[str, Any]]:
        return self.parse(path, mime_type).rows
