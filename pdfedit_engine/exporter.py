from __future__ import annotations

import re
from pathlib import Path

from .utils import write_bytes_atomic

_PDF_SUFFIX = re.compile(r"\.pdf$", re.IGNORECASE)


def edited_file_name(file_name: str) -> str:
    base = _PDF_SUFFIX.sub("", Path(file_name or "document").name) or "document"
    return f"{base}_edited.pdf"


def save_pdf(data: bytes, out_dir: str | Path, original_name: str) -> Path:
    """Write compiled bytes as {base}_edited.pdf under out_dir.

    Only called with fully compiled output; the write itself is atomic, so a
    failure never leaves a truncated file behind.
    """
    out_path = Path(out_dir) / edited_file_name(original_name)
    write_bytes_atomic(out_path, data)
    return out_path
