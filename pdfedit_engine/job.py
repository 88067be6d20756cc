from __future__ import annotations

import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .utils import append_jsonl, ensure_dir, utc_now_iso, write_json


@dataclass
class JobPaths:
    job_dir: Path
    input_dir: Path
    output_dir: Path
    edits_json: Path
    metrics_json: Path
    errors_jsonl: Path


def job_paths_for(job_dir: str | Path) -> JobPaths:
    job_dir = Path(job_dir)
    return JobPaths(
        job_dir=job_dir,
        input_dir=job_dir / "input",
        output_dir=job_dir / "output",
        edits_json=job_dir / "input" / "edits.json",
        metrics_json=job_dir / "metrics.json",
        errors_jsonl=job_dir / "errors.jsonl",
    )


def create_job_dirs(workspace: str | Path, job_id: str) -> JobPaths:
    paths = job_paths_for(Path(workspace) / "jobs" / job_id)
    for p in [paths.input_dir, paths.output_dir]:
        ensure_dir(p)
    return paths


def new_job_id() -> str:
    """Job ids sort by time: YYYY-MM-DD/HH-MM-SS__<shortid>."""
    now = datetime.now(timezone.utc)
    short_id = uuid.uuid4().hex[:8]
    return f"{now.strftime('%Y-%m-%d')}/{now.strftime('%H-%M-%S')}__{short_id}"


def page_id_for(page_index: int) -> str:
    return f"page_{int(page_index) + 1:03d}"


def record_error(paths: JobPaths | None, page_id: str, stage: str, message: str) -> None:
    # Interactive sessions run without a job; there is nowhere to journal.
    if paths is None:
        return
    append_jsonl(
        paths.errors_jsonl,
        {"page_id": page_id, "stage": stage, "message": message, "at": utc_now_iso()},
    )


def init_job_outputs(paths: JobPaths) -> None:
    write_json(
        paths.metrics_json,
        {
            "created_at": utc_now_iso(),
            "finished": False,
            "completed_at": None,
            "pages_total": 0,
            "text_blocks": 0,
            "drawings": 0,
            "extracted_texts_edited": 0,
            "edit_count": 0,
            "output_bytes": 0,
        },
    )
    paths.errors_jsonl.parent.mkdir(parents=True, exist_ok=True)
    paths.errors_jsonl.touch(exist_ok=True)


def snapshot_input(paths: JobPaths, input_path: str | Path, edits_path: str | Path | None = None) -> None:
    src = Path(input_path)
    if src.is_file():
        shutil.copy2(src, paths.input_dir / src.name)
    if edits_path is not None and Path(edits_path).is_file():
        shutil.copy2(edits_path, paths.edits_json)
