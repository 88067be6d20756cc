from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .job import JobPaths
from .utils import utc_now_iso, write_json


@dataclass
class JobWriter:
    paths: JobPaths

    def write_final(self, job_meta: dict[str, Any], metrics: dict[str, Any]) -> None:
        now = utc_now_iso()

        # Mark completion only when the output PDF has been written.
        metrics_out = dict(metrics)
        metrics_out["finished"] = True
        metrics_out["completed_at"] = now
        metrics_out["job"] = dict(job_meta)

        write_json(self.paths.metrics_json, metrics_out)
