from __future__ import annotations


class DocumentLoadError(RuntimeError):
    """The input bytes could not be opened as a PDF document."""


class CompileError(RuntimeError):
    """Export failed; no output bytes are produced."""
