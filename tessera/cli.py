"""Command line interface for Tessera."""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Iterable, List, Optional, Tuple

from .adapters import detect_adapter
from .configuration import TesseraConfig, get_settings, split_elements
from .errors import ConfigurationError, StrictModeAbort, TesseraError
from .merger import MergeReport, SkeletonMerger
from .policy import ErrorPolicy
from .runner import (
    ExportRunner,
    ExportSummary,
    ImportRunner,
    ImportSummary,
    derive_output_path,
    read_text,
    validate_paths,
    write_text,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tessera",
        description=(
            "Convert documents to skeletons plus an XLIFF interchange file, "
            "and render translated documents back from them."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser(
        "import",
        help="Create skeletons, an interchange file and a format table from documents.",
    )
    import_parser.add_argument(
        "inputs",
        nargs="+",
        help="Files that make up one logical document, in order.",
    )
    import_parser.add_argument(
        "-o",
        "--output-dir",
        required=True,
        help="Directory that receives the .skl, .xlf and .fmt files.",
    )
    import_parser.add_argument(
        "--name",
        help="Base name of the interchange and format files (default: first input name).",
    )
    import_parser.add_argument(
        "-l",
        "--source-locale",
        help="Locale of the source text (default: TESSERA_SOURCE_LOCALE).",
    )
    import_parser.add_argument(
        "--elements",
        help="Comma-separated element names to translate (default: TESSERA_TRANSLATABLE_ELEMENTS).",
    )
    import_parser.add_argument(
        "--attributes",
        help=(
            "Comma-separated attribute names whose values are translated "
            "(default: TESSERA_TRANSLATABLE_ATTRIBUTES; pass '' for none)."
        ),
    )
    import_parser.add_argument("--max-depth", type=int, help="Maximum TU nesting depth.")
    import_parser.add_argument(
        "--strict",
        action="store_true",
        help="Abort on the first structural warning.",
    )
    _add_common_flags(import_parser)

    export_parser = subparsers.add_parser(
        "export",
        help="Render skeletons into translated documents for one locale.",
    )
    export_parser.add_argument("skeletons", nargs="+", help="Skeleton (.skl) files to render.")
    export_parser.add_argument("--interchange", required=True, help="Interchange (.xlf) file.")
    export_parser.add_argument(
        "--format",
        dest="format_path",
        required=True,
        help="Format table (.fmt) file.",
    )
    export_parser.add_argument("-l", "--locale", required=True, help="Target locale.")
    export_parser.add_argument("-p", "--phase", help="Phase name of the targets to use.")
    export_parser.add_argument(
        "--max-phase",
        type=int,
        help="Highest numeric phase searched during fallback (default: TESSERA_MAX_PHASE).",
    )
    export_parser.add_argument(
        "-o",
        "--output",
        help=(
            "Output file for a single skeleton, or output directory for several. "
            "Defaults to appending the locale to the skeleton name."
        ),
    )
    export_parser.add_argument(
        "--escape-ampersands",
        action="store_true",
        help="Escape bare ampersands in translated text.",
    )
    export_parser.add_argument(
        "--mark-untranslated",
        action="store_true",
        help="Insert a notice where a segment has no translation.",
    )
    _add_common_flags(export_parser)

    merge_parser = subparsers.add_parser(
        "merge",
        help="Merge a structural trace with its original text into a skeleton.",
    )
    merge_parser.add_argument("trace", help="Structural trace file.")
    merge_parser.add_argument("original", help="Original document text.")
    merge_parser.add_argument("-o", "--output", required=True, help="Skeleton file to write.")
    merge_parser.add_argument("--max-depth", type=int, help="Maximum TU nesting depth.")
    merge_parser.add_argument(
        "--strict",
        action="store_true",
        help="Abort on the first structural warning.",
    )
    _add_common_flags(merge_parser)
    return parser


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting output files that already exist.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )


def configure_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _policy(settings: TesseraConfig, strict: bool) -> ErrorPolicy:
    return ErrorPolicy(
        strict=strict or settings.TESSERA_STRICT,
        warning_limit=settings.TESSERA_WARNING_LIMIT,
    )


def execute_import(
    args: argparse.Namespace,
    settings: TesseraConfig,
) -> tuple[int, ImportSummary | None, str | None]:
    """Run an import and return the exit code, summary, and message."""

    paths = [pathlib.Path(value).expanduser().resolve() for value in args.inputs]
    for path in paths:
        if not path.is_file():
            return 1, None, f"Input file not found: {path}"

    source_locale = args.source_locale or settings.TESSERA_SOURCE_LOCALE
    elements = split_elements(args.elements or settings.TESSERA_TRANSLATABLE_ELEMENTS)
    attributes = split_elements(
        args.attributes if args.attributes is not None else settings.TESSERA_TRANSLATABLE_ATTRIBUTES
    )
    max_depth = args.max_depth if args.max_depth is not None else settings.TESSERA_MAX_TU_DEPTH

    try:
        _, adapter = detect_adapter(
            paths[0],
            translatable=elements,
            source_locale=source_locale,
            translatable_attributes=attributes,
        )
        merger = SkeletonMerger(
            container_tag=settings.TESSERA_CONTAINER_TAG,
            exclude_markers=None,
            policy=_policy(settings, args.strict),
        )
        runner = ImportRunner(adapter, merger, source_locale=source_locale, max_depth=max_depth)
        summary = runner.import_files(
            paths,
            pathlib.Path(args.output_dir).expanduser().resolve(),
            name=args.name,
            encoding=settings.TESSERA_ENCODING,
            force_overwrite=args.force,
        )
    except StrictModeAbort as exc:
        return 2, None, str(exc)
    except (TesseraError, ValueError) as exc:
        return 1, None, str(exc)
    except Exception as exc:  # pragma: no cover - defensive catch
        return 1, None, f"{exc}\nAn unexpected error occurred. Please rerun with --verbose for more details."

    return 0, summary, None


def _export_jobs(args: argparse.Namespace) -> List[Tuple[pathlib.Path, pathlib.Path]]:
    skeletons = [pathlib.Path(value).expanduser().resolve() for value in args.skeletons]
    if args.output and len(skeletons) == 1:
        return [(skeletons[0], pathlib.Path(args.output).expanduser().resolve())]

    jobs = []
    for skeleton in skeletons:
        output_path = derive_output_path(skeleton, args.locale)
        if args.output:
            output_path = pathlib.Path(args.output).expanduser().resolve() / output_path.name
        jobs.append((skeleton, output_path))
    return jobs


def execute_export(
    args: argparse.Namespace,
    settings: TesseraConfig,
) -> tuple[int, ExportSummary | None, str | None]:
    """Render skeletons and return the exit code, summary, and message."""

    runner = ExportRunner(
        interchange_path=pathlib.Path(args.interchange).expanduser().resolve(),
        format_path=pathlib.Path(args.format_path).expanduser().resolve(),
        locale=args.locale,
        phase_name=args.phase,
        max_phase=args.max_phase if args.max_phase is not None else settings.TESSERA_MAX_PHASE,
        escape_ampersands=args.escape_ampersands or settings.TESSERA_ESCAPE_AMPERSANDS,
        mark_untranslated=args.mark_untranslated or settings.TESSERA_MARK_UNTRANSLATED,
        encoding=settings.TESSERA_ENCODING,
    )
    try:
        summary = runner.run(_export_jobs(args), force_overwrite=args.force)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except TesseraError as exc:
        return 1, None, str(exc)
    except Exception as exc:  # pragma: no cover - defensive catch
        return 1, None, f"{exc}\nAn unexpected error occurred. Please rerun with --verbose for more details."

    return 0, summary, None


def execute_merge(
    args: argparse.Namespace,
    settings: TesseraConfig,
) -> tuple[int, MergeReport | None, str | None]:
    """Merge a trace file with its original and write the skeleton."""

    trace_path = pathlib.Path(args.trace).expanduser().resolve()
    original_path = pathlib.Path(args.original).expanduser().resolve()
    output_path = pathlib.Path(args.output).expanduser().resolve()
    max_depth = args.max_depth if args.max_depth is not None else settings.TESSERA_MAX_TU_DEPTH
    encoding = settings.TESSERA_ENCODING

    try:
        validate_paths(trace_path, output_path, force_overwrite=args.force)
        validate_paths(original_path, output_path, force_overwrite=args.force)
        merger = SkeletonMerger(
            container_tag=settings.TESSERA_CONTAINER_TAG,
            policy=_policy(settings, args.strict),
        )
        report = merger.merge_text(
            read_text(trace_path, encoding),
            read_text(original_path, encoding),
            max_depth=max_depth,
        )
        output_path.parent.mkdir(parents=True, exist_ok=True)
        write_text(output_path, report.skeleton, encoding)
    except StrictModeAbort as exc:
        return 2, None, str(exc)
    except (FileNotFoundError, ValueError) as exc:
        return 1, None, str(exc)
    except TesseraError as exc:
        return 1, None, str(exc)

    return 0, report, None


def print_import_summary(summary: ImportSummary) -> None:
    """Output a friendly report once an import completes."""

    print("\nImport complete.")
    for path, skeleton in zip(summary.input_paths, summary.skeleton_paths):
        print(f"  Input file:      {path}")
        print(f"  Skeleton:        {skeleton}")
    print(f"  Interchange:     {summary.interchange_path}")
    print(f"  Format table:    {summary.format_path}")
    print(f"  Segments:        {summary.total_segments}")
    print(f"  Inline markup:   {summary.total_markup} entries")
    print(f"  Placeholders:    {summary.total_placeholders}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    _print_notes(summary.warning_messages)


def print_export_summary(summary: ExportSummary) -> None:
    """Output a friendly report once an export completes."""

    print("\nExport complete.")
    for path in summary.output_paths:
        print(f"  Output file:     {path}")
    print(f"  Locale:          {summary.locale}")
    if summary.phase_name:
        print(f"  Phase:           {summary.phase_name}")
    print(
        "  Segments:        "
        f"{summary.translated_units} translated / {summary.total_units} total "
        f"({summary.untranslated_units} untranslated)"
    )
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")


def print_merge_report(report: MergeReport) -> None:
    print("\nMerge complete.")
    print(f"  Placeholders:    {report.placeholders}")
    _print_notes(report.warnings)


def _print_notes(messages: List[str]) -> None:
    if messages:
        print("  Notes:")
        for message in messages:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(exc)
        return 1

    configure_logging(settings.TESSERA_LOG_LEVEL, args.verbose)

    if args.command == "import":
        exit_code, summary, message = execute_import(args, settings)
        printer = print_import_summary
    elif args.command == "export":
        exit_code, summary, message = execute_export(args, settings)
        printer = print_export_summary
    else:
        exit_code, summary, message = execute_merge(args, settings)
        printer = print_merge_report

    if message:
        print(message)
    if summary is not None:
        printer(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
