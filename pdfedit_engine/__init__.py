"""PDF annotation overlay and compilation engine.

This package intentionally focuses on:
- the annotation state model (text blocks, freehand ink, edits to extracted text)
- per-run text extraction with font/style/color inference
- compiling the overlay back onto the original PDF

Interactive UI (toolbars, pickers, upload) is out of scope.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
