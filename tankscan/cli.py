"""Command-line harness for extracting fuel receipts.

Provides subcommands for extracting a single receipt photo to JSON and
for processing a folder of photos into a CSV file.
"""

import argparse
import asyncio
import csv
import json
import sys
import time
from pathlib import Path

from tankscan.geometry.quad import Quad, order_points
from tankscan.ocr.receipt_processor import (
    PipelineError,
    ReceiptProcessor,
    ReceiptScan,
    load_image,
)
from tankscan.utils.config import load_config
from tankscan.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.png", "*.jpg", "*.jpeg", "*.tiff", "*.tif", "*.webp")
_FIELDS = ("date", "liters", "total_cost", "price_per_liter")
_COLUMNS = (
    ["filename", "status", "processing_time_s", "corner_confidence"]
    + [f"{name}{suffix}" for name in _FIELDS for suffix in ("", "_status")]
    + ["error"]
)


def parse_quad(text: str) -> Quad:
    """Parse ``"x,y;x,y;x,y;x,y"`` into a canonical quad.

    Raises:
        argparse.ArgumentTypeError: If the text is malformed.
    """
    try:
        points = [tuple(float(v) for v in pair.split(",")) for pair in text.split(";")]
        return order_points(points)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid quad {text!r}: {exc}") from exc


def _find_images(input_dir: Path) -> list[Path]:
    """Find all supported image files in a directory."""
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


async def _scan(
    processor: ReceiptProcessor, file_path: Path, quad: Quad | None = None
) -> ReceiptScan:
    image = load_image(file_path)
    return await processor.process(image, quad)


def extract_single(file_path: Path, quad: Quad | None = None) -> dict[str, object]:
    """Process a single receipt photo and return structured results.

    Args:
        file_path: Path to the photo.
        quad: Optional receipt corners in image coordinates.

    Returns:
        Dictionary with filename, fields, diagnostics and raw_text.
    """
    config = load_config()
    processor = ReceiptProcessor(config)
    scan = asyncio.run(_scan(processor, file_path, quad))
    return {"filename": file_path.name, **scan.to_dict()}


def _row(file_path: Path, scan: ReceiptScan) -> dict[str, object]:
    row: dict[str, object] = {
        "filename": file_path.name,
        "status": "success",
        "corner_confidence": scan.corner_confidence,
        "error": None,
    }
    for name, data in scan.result.to_dict().items():
        row[name] = data["value"]
        row[f"{name}_status"] = data["status"]
    return row


async def _process_all(
    files: list[Path], processor: ReceiptProcessor, verbose: bool
) -> list[dict[str, object]]:
    results: list[dict[str, object]] = []
    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Processing [{i}/{len(files)}]: {file_path.name}")

        start_time = time.time()
        try:
            scan = await _scan(processor, file_path)
        except (PipelineError, OSError) as exc:
            logger.error("Failed to process %s: %s", file_path.name, exc)
            results.append(
                {"filename": file_path.name, "status": "failed", "error": str(exc)}
            )
            continue
        row = _row(file_path, scan)
        row["processing_time_s"] = round(time.time() - start_time, 2)
        results.append(row)
    return results


def process_folder(
    input_dir: Path, output_csv: Path, verbose: bool = False
) -> dict[str, int]:
    """Process all receipt photos in a folder and export results to CSV.

    Args:
        input_dir: Directory containing receipt photos.
        output_csv: Path for the output CSV file.
        verbose: Whether to print per-file progress.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    files = _find_images(input_dir)
    if not files:
        logger.warning("No images found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d images to process", len(files))
    processor = ReceiptProcessor(load_config())
    results = asyncio.run(_process_all(files, processor, verbose))

    _write_csv(results, output_csv)
    logger.info("Results written to %s", output_csv)

    failed = sum(1 for r in results if r["status"] == "failed")
    summary = {"total": len(files), "successful": len(files) - failed, "failed": failed}
    _print_summary(summary, output_csv)
    return summary


def _write_csv(results: list[dict[str, object]], output_path: Path) -> None:
    """Write extraction results to a CSV file."""
    if not results:
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(results)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    print(f"\n{'=' * 50}")
    print("Receipt Extraction Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_csv}")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Fuel receipt extractor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", default=None, help="Override the log level")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("extract", help="Extract a single receipt")
    single_parser.add_argument("file", type=Path, help="Receipt photo")
    single_parser.add_argument(
        "--quad",
        type=parse_quad,
        default=None,
        help='Receipt corners as "x,y;x,y;x,y;x,y" (estimated when omitted)',
    )
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    batch_parser = subparsers.add_parser("batch", help="Process a folder of receipts")
    batch_parser.add_argument("input_dir", type=Path, help="Directory with photos")
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.csv"),
        help="Output CSV file (default: results.csv)",
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    args = parser.parse_args(argv)

    setup_logging(args.log_level or load_config().log_level)

    if args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            result = extract_single(args.file, args.quad)
        except PipelineError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(2)
        output_str = json.dumps(result, indent=2, ensure_ascii=False)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str)
            print(f"Output written to {args.output}")
        else:
            print(output_str)
    elif args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(args.input_dir, args.output, args.verbose)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
