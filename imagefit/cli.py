"""
Command-line entry point: upscale one 16:9 image and write it as a JPEG under the size budget.

usage:
    imagefit input.png [-o out.jpg] [--min-width 2880] [--min-height 2304] [--budget 5242880]
"""
import argparse
import logging
import os
import sys

from imagefit.errors import ImageFitError
from imagefit.models import (
    DEFAULT_ASPECT_TOLERANCE,
    DEFAULT_MIN_HEIGHT,
    DEFAULT_MIN_WIDTH,
    DEFAULT_SIZE_BUDGET,
    TargetSpec,
)
from imagefit.utils.image_processing import resize_image_bytes


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Upscale a 16:9 image past a minimum resolution and re-encode it as JPEG under a size limit."
    )
    parser.add_argument("input", help="Path to the source image")
    parser.add_argument(
        "-o",
        "--output",
        help="Output file (default: <input>_resized.jpg)",
    )
    parser.add_argument("--min-width", type=int, default=DEFAULT_MIN_WIDTH,
                        help=f"Output width must exceed this (default {DEFAULT_MIN_WIDTH})")
    parser.add_argument("--min-height", type=int, default=DEFAULT_MIN_HEIGHT,
                        help=f"Output height must exceed this (default {DEFAULT_MIN_HEIGHT})")
    parser.add_argument("--budget", type=int, default=DEFAULT_SIZE_BUDGET,
                        help=f"Maximum output size in bytes (default {DEFAULT_SIZE_BUDGET})")
    parser.add_argument("--tolerance", type=float, default=DEFAULT_ASPECT_TOLERANCE,
                        help=f"Allowed deviation from 16:9 (default {DEFAULT_ASPECT_TOLERANCE})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every trial encode")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    output_path = args.output or os.path.splitext(args.input)[0] + "_resized.jpg"

    try:
        with open(args.input, "rb") as f:
            image_bytes = f.read()
        source, result = resize_image_bytes(
            image_bytes,
            target=TargetSpec(args.min_width, args.min_height),
            budget=args.budget,
            tolerance=args.tolerance,
        )
    except OSError as e:
        print(f"Error: failed to read file: {e}", file=sys.stderr)
        return 1
    except ImageFitError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    try:
        with open(output_path, "wb") as f:
            f.write(result.payload)
    except OSError as e:
        print(f"Error: failed to write file: {e}", file=sys.stderr)
        return 1

    print(
        f"Done.  {source.width}x{source.height} -> {result.width}x{result.height}, "
        f"quality={result.quality_level:.4f}, size={result.byte_size} bytes -> {output_path}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
