from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..core.types import FileDescriptor
from ..core.utils import collect_columns
from .ingest import KIND_CSV, KIND_PDF, KIND_SPREADSHEET, ParsedDataset, file_kind


def base_metadata(file: FileDescriptor) -> Dict[str, Any]:
    return {
        "fileName": file.original_name,
        "fileSize": file.size,
        "uploadedAt": file.uploaded_at,
        "mimeType": file.mime_type,
    }


def extract_metadata(
    file: FileDescriptor,
    rows: Sequence[Dict[str, Any]],
    *,
    dataset: Optional[ParsedDataset] = None,
) -> Dict[str, Any]:
    """Describe an upload from its parsed rows.

    ``dataset`` carries the parse details (delimiter, sheet name) when the
    caller has them.
    """
    metadata = base_metadata(file)
    kind = file_kind(file.mime_type, file.original_name)
    if kind == KIND_SPREADSHEET:
        metadata.update(
            type=KIND_SPREADSHEET,
            rowCount=len(rows),
            columnCount=len(collect_columns(rows)),
            sheet=dataset.sheet if dataset else None,
        )
    elif kind == KIND_CSV:
        metadata.update(
            type=KIND_CSV,
            rowCount=len(rows),
            columnCount=len(collect_columns(rows)),
            delimiter=(dataset.delimiter if dataset else None) or ",",
        )
    elif kind == KIND_PDF:
        metadata["type"] = KIND_PDF
    return metadata
