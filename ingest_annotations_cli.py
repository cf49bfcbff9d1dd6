#!/usr/bin/env python
#
# Annotation Ingest CLI
# © 2025 Shinichi Morita (shin3tky)
#
# CLI entry point for annotation ingestion.
# This module handles argument parsing and delegates to annotation_core.
#

import os
import sys
import json
import argparse
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from annotation_core import (
    VERSION,
    # Exceptions
    AnnotationConfigError,
    AnnotationError,
    format_error_for_user,
    create_diagnostic_from_exception,
    save_diagnostic_report,
    # Data model
    AnnotationFormat,
    ClassRegistry,
    DecoderRegistry,
    ImageRecord,
    IngestionConfig,
    IngestionResult,
    # Functions
    IngestionPipeline,
    create_registry,
    load_image_manifest,
    load_ingestion_config,
    read_raw_files,
    summarize,
)
from annotation_core.config_io import SUPPORTED_CONFIG_EXTENSIONS
from annotation_core.file_io import MANIFEST_EXTENSIONS
from annotation_core.i18n import available_locales, get_message
from annotation_core.ingest import LOCALE_ENV_VAR
from annotation_core.summary import DatasetSummary


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    default_locale = os.environ.get(LOCALE_ENV_VAR, "en")
    parser = argparse.ArgumentParser(
        description=(
            "Normalize COCO, YOLO, CSV and Pascal VOC annotations onto an image "
            "manifest"
        )
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Annotation Ingest CLI {VERSION}",
    )
    parser.add_argument(
        "--locale",
        default=default_locale,
        help=(
            "Locale code for CLI messages "
            f"(available: {', '.join(available_locales())}; "
            f"default: {LOCALE_ENV_VAR} or 'en')."
        ),
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=(
            "Path to ingestion configuration file (YAML/JSON). "
            f"Supported extensions: {', '.join(sorted(SUPPORTED_CONFIG_EXTENSIONS))}."
        ),
    )
    parser.add_argument(
        "-f",
        "--format",
        help=(
            "Annotation format: "
            + ", ".join(fmt.value for fmt in AnnotationFormat)
            + " (aliases: voc, pascal_voc)"
        ),
    )
    parser.add_argument(
        "-i",
        "--images",
        metavar="MANIFEST",
        help=(
            "Image manifest listing filename, width and height "
            f"({', '.join(sorted(MANIFEST_EXTENSIONS))})"
        ),
    )
    parser.add_argument("files", nargs="*", metavar="FILE", help="Annotation files")
    parser.add_argument(
        "--list-decoders",
        action="store_true",
        help="List available annotation decoders and exit",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result, annotated images and class colors as JSON",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print per-class counts and box statistics",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when any record was skipped",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads used to read annotation files (default: from config)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug logs and detailed diagnostic information on errors",
    )
    parser.add_argument(
        "--save-diagnostic",
        metavar="FILE",
        nargs="?",
        const="",
        type=str,
        default=None,
        help="Save diagnostic report to file on error (default: auto-generated name)",
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    """Show DEBUG logs from annotation_core when verbose mode is enabled."""
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(levelname)s:%(name)s:%(message)s",
        force=True,
    )


def _build_config(args: argparse.Namespace) -> IngestionConfig:
    config = load_ingestion_config(args.config) if args.config else IngestionConfig()
    overrides: Dict[str, Any] = {"locale": args.locale, "strict": True}
    if args.workers is not None:
        overrides["max_workers"] = args.workers
    try:
        return replace(config, **overrides)
    except ValueError as exc:
        raise AnnotationConfigError(
            str(exc), config_key="max_workers", original_error=exc
        ) from exc


def _format_context(context: Dict[str, Any]) -> str:
    if not context:
        return ""
    return " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"


def print_result(result: IngestionResult, locale: str) -> None:
    print(
        get_message(
            "ui.cli.accepted",
            locale=locale,
            count=result.accepted_count,
            format=result.format.value,
        )
    )
    if not result.diagnostics:
        return
    print(
        get_message(
            "ui.cli.diagnostics.header", locale=locale, count=len(result.diagnostics)
        )
    )
    for diagnostic in result.diagnostics:
        print(
            get_message(
                "ui.cli.diagnostics.line",
                locale=locale,
                severity=diagnostic.severity.value,
                code=diagnostic.code,
                message=diagnostic.message,
            )
            + _format_context(diagnostic.context)
        )


def print_summary(summary: DatasetSummary, locale: str) -> None:
    print("=" * 60)
    print(get_message("ui.cli.summary.header", locale=locale))
    print("=" * 60)
    print(
        get_message(
            "ui.cli.summary.images",
            locale=locale,
            annotated=summary.annotated_images,
            total=summary.total_images,
        )
    )
    print(
        get_message(
            "ui.cli.summary.annotations",
            locale=locale,
            count=summary.total_annotations,
        )
    )
    for label, count in summary.class_counts.items():
        print(
            get_message(
                "ui.cli.summary.class_line",
                locale=locale,
                label=label,
                count=count,
                color=summary.class_colors.get(label, ""),
            )
        )
    stats = summary.box_stats
    if stats.count:
        print(
            get_message(
                "ui.cli.summary.box_stats",
                locale=locale,
                mean=stats.mean_area,
                median=stats.median_area,
                min=stats.min_area,
                max=stats.max_area,
            )
        )


def build_json_payload(
    result: IngestionResult,
    images: List[ImageRecord],
    registry: ClassRegistry,
    summary: Optional[DatasetSummary] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "result": result.to_dict(),
        "classes": registry.to_dict(),
        "images": [image.to_dict() for image in images],
    }
    if summary is not None:
        payload["summary"] = summary.to_dict()
    return payload


def list_decoders() -> List[Dict[str, str]]:
    listing = []
    for name in DecoderRegistry.list_available():
        decoder = DecoderRegistry.create(name)
        info = decoder.get_info()
        info["format"] = decoder.format.value if decoder.format else ""
        listing.append(info)
    return listing


def print_decoders(listing: List[Dict[str, str]], locale: str) -> None:
    print(get_message("ui.cli.decoders.header", locale=locale))
    for info in listing:
        print(
            get_message(
                "ui.cli.decoders.line",
                locale=locale,
                plugin_name=info["plugin_name"],
                name=info["name"],
                version=info["version"],
                cls=info["class"],
            )
        )


def run(args: argparse.Namespace) -> int:
    """Run one ingestion and return the process exit status."""
    locale = args.locale
    if args.list_decoders:
        listing = list_decoders()
        if args.json:
            print(json.dumps(listing, indent=2))
        else:
            print_decoders(listing, locale)
        return 0

    config = _build_config(args)
    images = load_image_manifest(args.images)
    files = read_raw_files(args.files, max_workers=config.max_workers)
    registry = create_registry(config)

    result = IngestionPipeline(config).run(args.format, files, images, registry)
    summary = summarize(images, registry) if args.summary else None

    if args.json:
        print(json.dumps(build_json_payload(result, images, registry, summary), indent=2))
    else:
        print_result(result, locale)
        if summary is not None:
            print_summary(summary, locale)

    if args.strict and result.warnings:
        print(
            get_message(
                "ui.cli.strict_failed", locale=locale, count=len(result.warnings)
            ),
            file=sys.stderr,
        )
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    locale = args.locale
    if not args.list_decoders:
        missing = [
            flag
            for flag, value in (("--format", args.format), ("--images", args.images))
            if not value
        ]
        if missing:
            parser.error(
                get_message(
                    "ui.cli.missing_arguments", locale=locale, flags=", ".join(missing)
                )
            )
        if not args.files:
            parser.error(get_message("ui.cli.missing_files", locale=locale))

    _configure_logging(args.verbose)

    try:
        status = run(args)
    except AnnotationError as e:
        # Handle annotation_core exceptions with user-friendly output
        print(
            format_error_for_user(e, verbose=args.verbose, locale=locale),
            file=sys.stderr,
        )

        if args.save_diagnostic is not None:
            diag_path = args.save_diagnostic if args.save_diagnostic else None
            saved_path = save_diagnostic_report(e, diag_path, locale=locale)
            print(
                get_message(
                    "ui.diagnostic.report.saved", locale=locale, path=saved_path
                ),
                file=sys.stderr,
            )
        elif not args.verbose:
            print(
                get_message("ui.diagnostic.hint.save", locale=locale),
                file=sys.stderr,
            )
        sys.exit(1)
    except KeyboardInterrupt:
        print(
            "\n" + get_message("ui.interrupt.generic", locale=locale),
            file=sys.stderr,
        )
        sys.exit(130)
    except Exception as e:
        # Unexpected errors - show traceback in verbose mode
        if args.verbose:
            import traceback

            traceback.print_exc()
        else:
            print(
                "\n"
                + get_message(
                    "ui.error.unexpected",
                    locale=locale,
                    error_type=type(e).__name__,
                    error_message=e,
                ),
                file=sys.stderr,
            )
            print(
                get_message("ui.error.unexpected.hint", locale=locale),
                file=sys.stderr,
            )
        if args.save_diagnostic is not None:
            diag_path = args.save_diagnostic or "annotation_diagnostic_unexpected.md"
            report = create_diagnostic_from_exception(
                e, context={"format": args.format, "files": len(args.files)}
            ).format_for_issue(locale=locale, include_header=True)
            with open(diag_path, "w", encoding="utf-8") as f:
                f.write(report)
            print(
                get_message("ui.diagnostic.report.saved", locale=locale, path=diag_path),
                file=sys.stderr,
            )
        sys.exit(1)

    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()
