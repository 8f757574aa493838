"""High-level orchestration for import (native to skeleton) and export."""

from __future__ import annotations

import logging
import pathlib
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .adapters import NativeAdapter
from .errors import ConversionError, OverwriteRefusedError, TesseraError
from .formats import FormatStore, FormatTableWriter
from .ids import AllocatorState, IdAllocator
from .interchange import InterchangeDocument
from .merger import SkeletonMerger
from .resolver import TranslationResolver, select_target
from .substitutor import PlaceholderSubstitutor, TextFilter

logger = logging.getLogger(__name__)

SKELETON_SUFFIX = ".skl"
INTERCHANGE_SUFFIX = ".xlf"
FORMAT_SUFFIX = ".fmt"


@dataclass
class ImportResult:
    """Everything produced from the streams of one logical document."""

    skeletons: Dict[str, str]
    document: InterchangeDocument
    formats: FormatTableWriter
    allocator_state: AllocatorState
    placeholders: int = 0
    warnings: List[str] = field(default_factory=list)


@dataclass
class ImportSummary:
    """Report returned after importing files."""

    input_paths: List[pathlib.Path]
    skeleton_paths: List[pathlib.Path]
    interchange_path: pathlib.Path
    format_path: pathlib.Path
    total_segments: int
    total_markup: int
    total_placeholders: int
    elapsed_seconds: float
    warning_messages: List[str] = field(default_factory=list)

    @property
    def total_warnings(self) -> int:
        return len(self.warning_messages)


@dataclass
class ExportSummary:
    """Report returned after rendering skeletons for one locale."""

    output_paths: List[pathlib.Path]
    locale: str
    phase_name: Optional[str]
    total_units: int
    translated_units: int
    elapsed_seconds: float

    @property
    def untranslated_units(self) -> int:
        return self.total_units - self.translated_units


class ImportRunner:
    """Composes an adapter with the skeleton merger.

    All streams passed to one :meth:`run` call share the allocator, so inline
    markup ids and tag sequence numbers never repeat inside a document.
    """

    def __init__(
        self,
        adapter: NativeAdapter,
        merger: Optional[SkeletonMerger] = None,
        source_locale: str = "en",
        allocator: Optional[IdAllocator] = None,
        max_depth: int = 1,
    ) -> None:
        self.adapter = adapter
        # Markup documents may use <sub> for subscripts, so nothing is excluded here.
        self.merger = merger or SkeletonMerger(exclude_markers=None)
        self.source_locale = source_locale
        self.allocator = allocator or IdAllocator()
        self.max_depth = max_depth

    def run(self, streams: Sequence[Tuple[str, str]], name: str = "document") -> ImportResult:
        document = InterchangeDocument(original=name, source_locale=self.source_locale)
        formats = FormatTableWriter()
        skeletons: Dict[str, str] = {}
        warnings: List[str] = []
        placeholders = 0

        for stream_name, text in streams:
            traced = self.adapter.trace(stream_name, text, self.allocator)
            report = self.merger.merge_text(traced.trace, traced.original, max_depth=self.max_depth)
            skeletons[stream_name] = report.skeleton
            placeholders += report.placeholders
            warnings.extend(report.warnings)
            for segment in traced.segments:
                document.add_segment(segment)
            for entry in traced.markup:
                formats.add(entry)
            logger.info(
                "Imported stream %s: %d segments, %d placeholders",
                stream_name,
                len(traced.segments),
                report.placeholders,
            )

        return ImportResult(
            skeletons=skeletons,
            document=document,
            formats=formats,
            allocator_state=self.allocator.snapshot(),
            placeholders=placeholders,
            warnings=warnings,
        )

    def import_files(
        self,
        paths: Sequence[pathlib.Path],
        output_dir: pathlib.Path,
        name: Optional[str] = None,
        *,
        encoding: str = "utf-8",
        force_overwrite: bool = False,
    ) -> ImportSummary:
        """Import ``paths`` as one document and write skeletons, XLIFF and format table."""

        start_time = time.time()
        if not paths:
            raise TesseraError("At least one input file is required.")
        name = name or paths[0].name

        streams = [(path.name, read_text(path, encoding)) for path in paths]
        if len({stream_name for stream_name, _ in streams}) != len(streams):
            raise TesseraError("Input files must have distinct names.")

        skeleton_paths = [output_dir / f"{path.name}{SKELETON_SUFFIX}" for path in paths]
        interchange_path = output_dir / f"{name}{INTERCHANGE_SUFFIX}"
        format_path = output_dir / f"{name}{FORMAT_SUFFIX}"
        for output_path in [*skeleton_paths, interchange_path, format_path]:
            if output_path.exists() and not force_overwrite:
                raise OverwriteRefusedError(
                    f"{output_path} already exists. Rename it or use the overwrite flag."
                )

        result = self.run(streams, name=name)

        output_dir.mkdir(parents=True, exist_ok=True)
        for path, skeleton_path in zip(paths, skeleton_paths):
            write_text(skeleton_path, result.skeletons[path.name], encoding)
        result.document.write(interchange_path, encoding=encoding)
        result.formats.write(format_path, encoding=encoding)

        return ImportSummary(
            input_paths=list(paths),
            skeleton_paths=skeleton_paths,
            interchange_path=interchange_path,
            format_path=format_path,
            total_segments=len(result.document),
            total_markup=len(result.formats.entries),
            total_placeholders=result.placeholders,
            elapsed_seconds=time.time() - start_time,
            warning_messages=result.warnings,
        )


class ExportRunner:
    """Renders skeletons for one locale and phase."""

    def __init__(
        self,
        *,
        interchange_path: pathlib.Path,
        format_path: pathlib.Path,
        locale: str,
        phase_name: Optional[str] = None,
        max_phase: int = 0,
        escape_ampersands: bool = False,
        mark_untranslated: bool = False,
        text_filters: Sequence[TextFilter] = (),
        encoding: str = "utf-8",
    ) -> None:
        self.interchange_path = interchange_path
        self.format_path = format_path
        self.locale = locale
        self.phase_name = phase_name
        self.max_phase = max_phase
        self.escape_ampersands = escape_ampersands
        self.mark_untranslated = mark_untranslated
        self.text_filters = tuple(text_filters)
        self.encoding = encoding

    def run(
        self,
        jobs: Sequence[Tuple[pathlib.Path, pathlib.Path]],
        *,
        force_overwrite: bool = False,
    ) -> ExportSummary:
        """Render each ``(skeleton, output)`` pair."""

        start_time = time.time()
        for skeleton_path, output_path in jobs:
            validate_paths(skeleton_path, output_path, force_overwrite=force_overwrite)

        document = InterchangeDocument.from_path(self.interchange_path, encoding=self.encoding)
        format_store = FormatStore.from_path(self.format_path, encoding=self.encoding)
        resolver = TranslationResolver(untranslated_notice=self.mark_untranslated)
        resolver.load(
            document,
            self.locale,
            phase_name=self.phase_name,
            max_phase=self.max_phase,
            escape_ampersands=self.escape_ampersands,
        )
        substitutor = PlaceholderSubstitutor(
            resolver,
            format_store,
            text_filters=self.text_filters,
        )

        outputs: List[pathlib.Path] = []
        for skeleton_path, output_path in jobs:
            skeleton = read_text(skeleton_path, self.encoding)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            write_text(output_path, substitutor.render(skeleton), self.encoding)
            outputs.append(output_path)
            logger.info("Rendered %s to %s", skeleton_path, output_path)

        translated = sum(
            1
            for segment in document
            if select_target(segment, self.locale, self.phase_name, self.max_phase) is not None
        )
        return ExportSummary(
            output_paths=outputs,
            locale=self.locale,
            phase_name=self.phase_name,
            total_units=len(document),
            translated_units=translated,
            elapsed_seconds=time.time() - start_time,
        )


def read_text(path: pathlib.Path, encoding: str) -> str:
    try:
        # newline="" keeps \r\n so output stays byte-identical
        with open(path, "r", encoding=encoding, newline="") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError, LookupError) as exc:
        raise ConversionError(f"Cannot read {path}: {exc}") from exc


def write_text(path: pathlib.Path, text: str, encoding: str) -> None:
    try:
        with open(path, "w", encoding=encoding, newline="") as handle:
            handle.write(text)
    except (OSError, UnicodeEncodeError, LookupError) as exc:
        raise ConversionError(f"Cannot write {path}: {exc}") from exc


def sanitise_locale_for_filename(locale: str) -> str:
    """Generate a filesystem-friendly suffix from a locale code."""

    collapsed = re.sub(r"\s+", "-", locale.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9_\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(skeleton_path: pathlib.Path, locale: str) -> pathlib.Path:
    """``doc.xml.skl`` rendered for ``fr`` becomes ``doc_fr.xml``."""

    native = skeleton_path
    if native.suffix == SKELETON_SUFFIX:
        native = native.with_suffix("")
    addition = sanitise_locale_for_filename(locale)
    return native.with_name(f"{native.stem}_{addition}{native.suffix}")


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    if not input_path.is_file():
        raise TesseraError(f"Input path must be a file: {input_path}")

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input file. Refusing to overwrite it."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            f"{output_path} already exists. Rename it or use the overwrite flag."
        )
