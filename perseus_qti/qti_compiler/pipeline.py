"""Per-item compilation pipeline orchestrator."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from perseus_qti.errors import CompilationError, StructuralError, UnmappableWidgetError
from perseus_qti.qti_compiler.dedup import dedupe_prompt_paragraphs
from perseus_qti.qti_compiler.merge import merge_item, validate_item
from perseus_qti.qti_compiler.models import (
    AssessmentItem,
    CompilationResult,
    CompilationStatus,
    ItemMetadata,
    PhaseResult,
    SourceItem,
    unmapped_slots,
)
from perseus_qti.qti_compiler.realizer import realize_feedback, realize_interactions, realize_widgets
from perseus_qti.qti_compiler.shell import build_shell
from perseus_qti.qti_compiler.widget_mapping import resolve_widget_mapping
from perseus_qti.qti_compiler.xml_compiler import emit_item_xml

logger = logging.getLogger(__name__)


def _source_id(data: Any) -> str:
    if isinstance(data, SourceItem):
        return data.id
    if isinstance(data, dict):
        return str(data.get("id", "<unknown>"))
    return "<unknown>"


def parse_source_item(data: SourceItem | dict[str, Any]) -> SourceItem:
    """Validate raw source JSON into a ``SourceItem``.

    Raises:
        StructuralError: If the data does not fit the source model.
    """
    if isinstance(data, SourceItem):
        return data
    try:
        return SourceItem.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        raise StructuralError(
            f"Source item does not match the source model: {first['msg']}",
            location=".".join(str(part) for part in first["loc"]) or None,
            details=[f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()],
        ) from e


class ItemCompilationPipeline:
    """Compiles one source item through every phase.

    1. Shell: body with named widget and interaction slots
    2. Widget mapping: a widget type (or ``WIDGET_NOT_FOUND``) per slot
    3. Interactions: typed interactions and response declarations
    4. Widgets: typed widget values (needs the realized interactions)
    5. Merge: one ``AssessmentItem`` with item-level feedback
    6. Dedup + validation: prompt/body paraphrases removed, invariants checked
    7. XML: deterministic QTI 3.0 emission

    The mapping phase is a gate: an unmapped slot stops the item with
    status ``cannot_migrate``. Any other ``CompilationError`` stops it
    with status ``failed``. One item's failure never affects another.
    """

    def __init__(self, output_dir: Path | None = None) -> None:
        """Initialize the pipeline.

        Args:
            output_dir: Directory to save XML and result JSON. If None,
                results are not saved.
        """
        self.output_dir = output_dir
        self.phase_results: list[PhaseResult] = []

    def run(
        self,
        data: SourceItem | dict[str, Any],
        proposed_mapping: dict[str, Any] | None = None,
    ) -> CompilationResult:
        """Compile one source item.

        Args:
            data: Source item, or its JSON form.
            proposed_mapping: Optional externally produced widget mapping.

        Returns:
            CompilationResult with status, XML (when compiled) and the
            stage that stopped the item otherwise.
        """
        self.phase_results = []
        source_id = _source_id(data)
        try:
            source = self._phase("parse", lambda: parse_source_item(data))
        except CompilationError as e:
            return self._failed(source_id, "parse", e)
        logger.info("Compiling source item: %s", source.id)

        try:
            shell = self._phase("shell", lambda: build_shell(source))
        except CompilationError as e:
            return self._failed(source.id, "shell", e)

        # ── Gate: widget mapping ──
        try:
            mapping = self._phase("widget_mapping", lambda: resolve_widget_mapping(source, shell, proposed_mapping))
        except CompilationError as e:
            return self._failed(source.id, "widget_mapping", e)
        unmapped = unmapped_slots(mapping)
        if unmapped:
            self.phase_results[-1].success = False
            self.phase_results[-1].errors.append(str(UnmappableWidgetError(unmapped)))
            logger.warning("Cannot migrate %s: no widget for slot(s) %s", source.id, ", ".join(unmapped))
            return self._finish(CompilationResult(
                source_id=source.id,
                status=CompilationStatus.CANNOT_MIGRATE,
                stage_failed="widget_mapping",
                error=f"No widget type available for slot(s): {', '.join(unmapped)}",
                error_location=unmapped[0],
                unmapped_slots=unmapped,
            ))

        stage = "interactions"
        try:
            interactions, declarations = self._phase(stage, lambda: realize_interactions(source, shell))
            stage = "widgets"
            widgets = self._phase(stage, lambda: realize_widgets(source, shell, mapping, interactions))
            stage = "merge"
            item = self._phase(stage, lambda: merge_item(
                source, shell, interactions, declarations, widgets, realize_feedback(source),
            ))
            stage = "validation"
            item, removed = dedupe_prompt_paragraphs(item)
            self._phase(stage, lambda: validate_item(item))
            stage = "xml"
            xml = self._phase(stage, lambda: emit_item_xml(item))
        except CompilationError as e:
            return self._failed(source.id, stage, e)

        return self._finish(CompilationResult(
            source_id=source.id,
            status=CompilationStatus.COMPILED,
            xml=xml,
            metadata=self._metadata(source, item),
            removed_paragraphs=len(removed),
        ))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _phase(self, name: str, step: Callable[[], Any]) -> Any:
        """Run one phase, recording its outcome before re-raising failures.

        Lookups on malformed source options surface here as plain Python
        errors; they fail the item as a ``StructuralError`` located at
        the phase.
        """
        try:
            data = step()
        except CompilationError as e:
            self.phase_results.append(PhaseResult(phase_name=name, success=False, errors=[str(e)]))
            raise
        except (TypeError, AttributeError, KeyError, ValueError) as e:
            error = StructuralError(f"Malformed source data: {type(e).__name__}: {e}", location=name)
            self.phase_results.append(PhaseResult(phase_name=name, success=False, errors=[str(error)]))
            raise error from e
        self.phase_results.append(PhaseResult(phase_name=name, success=True, data=data))
        return data

    def _failed(self, source_id: str, stage: str, error: CompilationError) -> CompilationResult:
        logger.error("Compilation of %s failed at %s: %s", source_id, stage, error)
        return self._finish(CompilationResult(
            source_id=source_id,
            status=CompilationStatus.FAILED,
            stage_failed=stage,
            error=error.message,
            error_location=error.location,
        ))

    @staticmethod
    def _metadata(source: SourceItem, item: AssessmentItem) -> ItemMetadata:
        return ItemMetadata(
            source_id=source.id,
            identifier=item.identifier,
            title=item.title,
            exercise_id=source.exercise_id,
            widget_types={slot: widget.type for slot, widget in (item.widgets or {}).items()},
            interaction_types={slot: inter.type for slot, inter in (item.interactions or {}).items()},
        )

    def _finish(self, result: CompilationResult) -> CompilationResult:
        if self.output_dir:
            self._save_result(self.output_dir, result)
        return result

    @staticmethod
    def _save_result(output_dir: Path, result: CompilationResult) -> None:
        """Write ``<identifier>.xml`` (when compiled) and ``<source>.result.json``."""
        output_dir.mkdir(parents=True, exist_ok=True)
        if result.xml is not None and result.metadata is not None:
            xml_path = output_dir / f"{result.metadata.identifier}.xml"
            xml_path.write_text(result.xml, encoding="utf-8")
        summary = result.model_dump(mode="json", exclude={"xml"})
        result_path = output_dir / f"{result.source_id}.result.json"
        result_path.write_text(json.dumps(summary, indent=2, ensure_ascii=False), encoding="utf-8")


def compile_source_item(
    data: SourceItem | dict[str, Any],
    proposed_mapping: dict[str, Any] | None = None,
) -> CompilationResult:
    """Compile one source item with a fresh pipeline."""
    return ItemCompilationPipeline().run(data, proposed_mapping)


def compile_source_items(
    items: list[SourceItem | dict[str, Any]],
    output_dir: Path | None = None,
) -> list[CompilationResult]:
    """Compile items independently; one failure never stops the batch."""
    pipeline = ItemCompilationPipeline(output_dir=output_dir)
    results = [pipeline.run(item) for item in items]
    counts = {status: 0 for status in CompilationStatus}
    for result in results:
        counts[result.status] += 1
    logger.info(
        "Compiled %d item(s): %d compiled, %d cannot migrate, %d failed",
        len(results),
        counts[CompilationStatus.COMPILED],
        counts[CompilationStatus.CANNOT_MIGRATE],
        counts[CompilationStatus.FAILED],
    )
    return results
