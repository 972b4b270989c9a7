"""Perseus source item -> QTI 3.0 assessment item compiler.

Phases run in order: shell, widget mapping, interaction and widget
realization, merge, dedup and validation, XML emission. See
``pipeline.ItemCompilationPipeline`` for the orchestration.
"""

from perseus_qti.qti_compiler.dedup import dedupe_prompt_paragraphs, paraphrase_similarity
from perseus_qti.qti_compiler.merge import merge_item, validate_item
from perseus_qti.qti_compiler.models import (
    AssessmentItem,
    CompilationResult,
    CompilationStatus,
    ResponseDeclaration,
    Shell,
    SourceItem,
)
from perseus_qti.qti_compiler.pipeline import (
    ItemCompilationPipeline,
    compile_source_item,
    compile_source_items,
    parse_source_item,
)
from perseus_qti.qti_compiler.realizer import realize_feedback, realize_interactions, realize_widgets
from perseus_qti.qti_compiler.shell import build_shell
from perseus_qti.qti_compiler.widget_mapping import resolve_widget_mapping
from perseus_qti.qti_compiler.xml_compiler import compile_item, emit_item_xml, parse_item

__all__ = [
    # Models
    "AssessmentItem",
    "CompilationResult",
    "CompilationStatus",
    "ResponseDeclaration",
    "Shell",
    "SourceItem",
    # Phases
    "build_shell",
    "resolve_widget_mapping",
    "realize_interactions",
    "realize_widgets",
    "realize_feedback",
    "merge_item",
    "validate_item",
    "dedupe_prompt_paragraphs",
    "paraphrase_similarity",
    # XML
    "compile_item",
    "emit_item_xml",
    "parse_item",
    # Pipeline
    "ItemCompilationPipeline",
    "compile_source_item",
    "compile_source_items",
    "parse_source_item",
]
