"""Build a PDF from page photos on the command line.

Run:
  python scripts/make_pdf.py page1.jpg page2.png -q high -m shadow_removal \
      --annotation analysis.json -o out.pdf

Without -o the file is named from the annotation's suggestedFilename
(or paperwork_scan.pdf). Exit code is non-zero on any failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path


# Ensure repo root is importable so `import paperscan...` works when running this file directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


def build_parser() -> argparse.ArgumentParser:
    from paperscan.models import QualityTier, VisualMode

    parser = argparse.ArgumentParser(description="Turn photographed pages into one PDF")
    parser.add_argument("images", nargs="+", type=Path, help="Page images, in page order")
    parser.add_argument(
        "-q", "--quality",
        default=QualityTier.MEDIUM.value,
        choices=[t.value for t in QualityTier],
    )
    parser.add_argument(
        "-m", "--mode",
        default=VisualMode.ORIGINAL.value,
        choices=[m.value for m in VisualMode],
    )
    parser.add_argument("--annotation", type=Path, help="JSON file with the AI analysis result")
    parser.add_argument("-o", "--output", type=Path, help="Output PDF path")
    parser.add_argument("-j", "--workers", type=int, default=1, help="Images processed in parallel")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    from paperscan.annotation import suggested_filename
    from paperscan.config import Settings
    from paperscan.errors import ErrorClassifier, PaperScanError
    from paperscan.models import SourceImage
    from paperscan.pipeline import generate_document

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    raw_annotation = None
    if args.annotation:
        try:
            raw_annotation = json.loads(args.annotation.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            print(f"Cannot read annotation {args.annotation}: {e}", file=sys.stderr)
            return 2

    images = []
    for path in args.images:
        try:
            data = path.read_bytes()
        except OSError as e:
            print(f"Cannot read {path}: {e}", file=sys.stderr)
            return 2
        images.append(
            SourceImage(data=data, mime_type=mimetypes.guess_type(path.name)[0] or "", name=path.name)
        )

    try:
        pdf_bytes = generate_document(
            images,
            args.quality,
            args.mode,
            raw_annotation,
            settings=Settings(max_workers=max(1, args.workers)),
        )
    except PaperScanError as e:
        classification = ErrorClassifier.classify(e)
        print(f"{classification.user_message} ({classification.system_message})", file=sys.stderr)
        return 1

    output = args.output or Path(suggested_filename(raw_annotation))
    output.write_bytes(pdf_bytes)
    print(f"Wrote {output} ({len(images)} pages, {len(pdf_bytes)} bytes)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
