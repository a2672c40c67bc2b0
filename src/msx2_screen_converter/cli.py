"""Command line interface for the MSX2 screen converter."""

from __future__ import annotations

import argparse
import sys
import warnings
from pathlib import Path
from typing import Dict, List

from .converter import ConversionResult, ConvertOptions, ScreenMode, convert_file
from .errors import ConversionError
from .filters import FILTERS
from .palette import PaletteMethod


def build_parser() -> argparse.ArgumentParser:
    filter_text = ", ".join(
        f"{spec.name} ({spec.minimum}..{spec.maximum}, default {spec.default})"
        for spec in FILTERS.values()
    )

    parser = argparse.ArgumentParser(
        description=(
            "Convert an image into MSX2 SCREEN 5/7/8/12 BSAVE binaries.\n"
            "SCREEN 5 writes .s50 + .pal, SCREEN 7 writes .s70/.s71 + .pal, "
            "SCREEN 8 writes .sc8 and SCREEN 12 writes .sc12.\n"
            "The source is resized to the mode resolution (256x212, or 512x212 for SCREEN 7).\n"
            f"Filters: {filter_text}"
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )

    parser.add_argument("input", help="Source image (any format Pillow can read)")
    parser.add_argument(
        "-o",
        "--output-dir",
        required=True,
        help="Destination directory for the generated files",
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ScreenMode],
        default=ScreenMode.SCREEN5.value,
        help="Target screen mode",
    )
    parser.add_argument(
        "--palette-method",
        choices=[method.value for method in PaletteMethod],
        default=PaletteMethod.HISTOGRAM.value,
        help="How the 16-colour palette is built for SCREEN 5/7",
    )
    parser.add_argument(
        "--filter",
        choices=sorted(FILTERS),
        help="Optional pre-processing filter applied before resizing",
    )
    parser.add_argument(
        "--filter-strength",
        type=float,
        help="Strength for --filter (defaults to the filter's own default)",
    )
    parser.add_argument(
        "--dither",
        action="store_true",
        help="Accepted for compatibility; has no effect on the output",
    )
    parser.add_argument(
        "--keep-aspect",
        action="store_true",
        help="Accepted for compatibility; has no effect on the output",
    )
    parser.add_argument("--prefix", default="", help="Optional prefix for output filenames")
    parser.add_argument("--suffix", default="", help="Optional suffix for output filenames")
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Also write the reconstructed image as a PNG",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite existing files without prompting",
    )
    return parser


def output_names(source: Path, result: ConversionResult, prefix: str, suffix: str) -> Dict[str, str]:
    stem = f"{prefix}{source.stem}{suffix}"
    return {tag: f"{stem}.{tag}" for tag in result.files}


def write_outputs(
    source: Path,
    result: ConversionResult,
    output_dir: Path,
    prefix: str,
    suffix: str,
    force: bool,
    preview: bool,
) -> List[Path]:
    names = output_names(source, result, prefix, suffix)
    targets = {tag: output_dir / name for tag, name in names.items()}
    preview_target = output_dir / f"{prefix}{source.stem}{suffix}_preview.png"

    planned = list(targets.values()) + ([preview_target] if preview else [])
    if source.resolve() in {path.resolve() for path in planned}:
        raise ConversionError(f"Refusing to overwrite the input image: {source}")
    conflicts = [str(path) for path in planned if path.exists() and not force]
    if conflicts:
        raise ConversionError(
            "Output files already exist (use --force to overwrite):\n" + "\n".join(conflicts)
        )

    output_dir.mkdir(parents=True, exist_ok=True)

    written: List[Path] = []
    for tag, target in targets.items():
        target.write_bytes(result.files[tag])
        print(f"wrote {target}")
        written.append(target)

    if preview:
        result.preview.to_image().convert("RGB").save(preview_target)
        print(f"wrote {preview_target}")
        written.append(preview_target)

    return written


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = ConvertOptions()
        options.mode = args.mode
        options.palette_method = args.palette_method
        options.dithering = args.dither
        options.keep_aspect_ratio = args.keep_aspect
        options.filter_name = args.filter
        options.filter_strength = args.filter_strength

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            if args.dither:
                warnings.warn("--dither has no effect on the output", RuntimeWarning, stacklevel=1)
            if args.keep_aspect:
                warnings.warn(
                    "--keep-aspect has no effect; the image is stretched to the mode resolution",
                    RuntimeWarning,
                    stacklevel=1,
                )
            if args.filter_strength is not None and not args.filter:
                warnings.warn(
                    "--filter-strength has no effect without --filter",
                    RuntimeWarning,
                    stacklevel=1,
                )
        for warning in caught:
            print(f"Warning: {warning.message}", file=sys.stderr)

        source = Path(args.input)
        result = convert_file(source, options)

        write_outputs(
            source,
            result,
            Path(args.output_dir),
            args.prefix,
            args.suffix,
            args.force,
            args.preview,
        )
        return 0
    except ConversionError as exc:
        print(exc, file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
