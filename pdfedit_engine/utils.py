from __future__ import annotations

import json
import os
import re
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_HEX_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def ensure_dir(path: str | Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def new_id() -> str:
    return uuid.uuid4().hex[:9]


def hex_to_rgb(color: str) -> tuple[float, float, float]:
    """'#RRGGBB' -> (r, g, b) in 0..1. Anything unparseable is black."""
    m = _HEX_RE.match((color or "").strip())
    if not m:
        return 0.0, 0.0, 0.0
    return tuple(int(g, 16) / 255.0 for g in m.groups())  # type: ignore[return-value]


def hex_to_rgb255(color: str) -> tuple[int, int, int]:
    r, g, b = hex_to_rgb(color)
    return round(r * 255), round(g * 255), round(b * 255)


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f"#{int(r):02x}{int(g):02x}{int(b):02x}"


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def write_json(path: str | Path, data: Any) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def append_jsonl(path: str | Path, obj: dict[str, Any]) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(obj, ensure_ascii=False) + "\n")


def load_json(path: str | Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_bytes_atomic(path: str | Path, data: bytes) -> None:
    """Write via a sibling temp file and rename, so readers never see a partial file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, target)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
