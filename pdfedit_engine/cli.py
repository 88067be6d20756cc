from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

import fitz  # PyMuPDF

from .compiler import compile_pdf
from .config import load_config
from .errors import CompileError, DocumentLoadError
from .exporter import save_pdf
from .extractor import TextExtractor
from .job import create_job_dirs, init_job_outputs, new_job_id, record_error, snapshot_input
from .serialize import edits_from_dict, extracted_text_to_dict
from .source import FitzDocumentSource
from .store import EditorStore, is_text_edited
from .utils import load_json, write_json
from .writer import JobWriter


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pdfedit_engine")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    ex = sub.add_parser("extract", help="Extract text runs (position, font, style, color) as JSON")
    ex.add_argument("--input", required=True, help="Input PDF")
    ex.add_argument("--out", required=True, help="Output JSON path")
    ex.add_argument("--pages", default=None, help="Comma separated 0-based page indexes (default: all)")
    ex.add_argument("--config", default=str(Path("config") / "default.json"), help="Config path")

    comp = sub.add_parser("compile", help="Apply an edits JSON to a PDF and write {name}_edited.pdf")
    comp.add_argument("--input", required=True, help="Original PDF")
    comp.add_argument("--edits", required=True, help="Edits JSON (text_blocks, drawings, extracted_texts, ...)")
    comp.add_argument("--workspace", default="./workspace", help="Workspace root")
    comp.add_argument("--paginate", action="store_true", help="Force the page footer on")
    comp.add_argument("--config", default=str(Path("config") / "default.json"), help="Config path")

    info = sub.add_parser("info", help="Print page count and per-page text/image stats")
    info.add_argument("--pdf", required=True, help="PDF to inspect")

    return p


def _parse_pages(pages_arg: str | None, page_count: int) -> list[int]:
    if not pages_arg:
        return list(range(page_count))
    out: list[int] = []
    for part in pages_arg.split(","):
        part = part.strip()
        if not part:
            continue
        i = int(part)
        if not 0 <= i < page_count:
            raise ValueError(f"page index out of range: {i}")
        out.append(i)
    return out


def cmd_extract(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    try:
        source = FitzDocumentSource.from_bytes(Path(args.input).read_bytes())
    except (OSError, DocumentLoadError) as e:
        print(f"extract_failed: {e}")
        return 1

    store = EditorStore()
    try:
        extractor = TextExtractor(source, store.dispatch, cfg.extract)
        try:
            for i in _parse_pages(args.pages, source.page_count):
                extractor.extract(i)
        finally:
            extractor.close()
    except ValueError as e:
        print(f"extract_failed: {e}")
        return 1
    finally:
        source.close()

    texts = [extracted_text_to_dict(t) for t in store.state.extracted_texts]
    write_json(args.out, {"file_name": Path(args.input).name, "extracted_texts": texts})
    print(f"runs={len(texts)}")
    return 0


def cmd_compile(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    job_id = new_job_id()
    paths = create_job_dirs(args.workspace, job_id)
    init_job_outputs(paths)
    snapshot_input(paths, args.input, args.edits)

    try:
        original = Path(args.input).read_bytes()
        bundle = edits_from_dict(load_json(args.edits))
    except Exception as e:
        record_error(paths, page_id="", stage="load", message=str(e))
        print(f"compile_failed: {e}")
        return 1

    pagination = bundle.pagination
    if args.paginate or bool(cfg.pagination.get("enabled", False)):
        pagination = replace(
            pagination,
            enabled=True,
            position=cfg.pagination.get("position", pagination.position),
            font_size=float(cfg.pagination.get("font_size", pagination.font_size)),
        )

    try:
        data = compile_pdf(
            original,
            bundle.text_blocks,
            bundle.drawings,
            bundle.extracted_texts,
            bundle.page_dimensions,
            None,
            pagination,
            cfg.compile,
        )
    except CompileError as e:
        record_error(paths, page_id="", stage="compile", message=str(e))
        print(f"compile_failed: {e}")
        return 1

    out_path = save_pdf(data, paths.output_dir, Path(args.input).name)
    edited = sum(1 for t in bundle.extracted_texts if is_text_edited(t))
    metrics: dict[str, Any] = {
        "pages_total": 0,
        "text_blocks": len(bundle.text_blocks),
        "drawings": len(bundle.drawings),
        "extracted_texts_edited": edited,
        "edit_count": edited + len(bundle.text_blocks) + len(bundle.drawings),
        "output_bytes": len(data),
    }
    with fitz.open(stream=data, filetype="pdf") as doc:
        metrics["pages_total"] = doc.page_count
    JobWriter(paths=paths).write_final(
        job_meta={"job_id": job_id, "input": str(args.input), "output": str(out_path)},
        metrics=metrics,
    )
    print(str(out_path))
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    try:
        doc = fitz.open(args.pdf)
    except Exception as e:
        print(f"info_failed: {e}")
        return 1
    with doc:
        print(f"pages={doc.page_count}")
        for page in doc:
            text = page.get_text().strip().replace("\n", " | ")
            print(f"page={page.number + 1} images={len(page.get_images())} text={text[:120]!r}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "extract":
        return cmd_extract(args)

    if args.command == "compile":
        return cmd_compile(args)

    if args.command == "info":
        return cmd_info(args)

    raise SystemExit(2)


if __name__ == "__main__":
    raise SystemExit(main())
