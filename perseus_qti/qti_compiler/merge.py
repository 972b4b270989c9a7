"""Merge phase outputs into one ``AssessmentItem`` and validate it."""

from __future__ import annotations

import logging

from perseus_qti.errors import BannedConstructError, StructuralError
from perseus_qti.qti_compiler.content_rules import ValidationResult
from perseus_qti.qti_compiler.models import (
    AssessmentItem,
    Feedback,
    ResponseDeclaration,
    Shell,
    SourceItem,
)
from perseus_qti.qti_compiler.naming import qti_item_identifier
from perseus_qti.qti_compiler.validation_checks import (
    check_banned_constructs,
    check_interaction_shape,
    check_response_correspondence,
    check_slot_consistency,
    check_slot_placement,
)

logger = logging.getLogger(__name__)

# Checks whose failures are structural, in reporting order
STRUCTURAL_CHECKS = (
    check_slot_consistency,
    check_slot_placement,
    check_response_correspondence,
    check_interaction_shape,
)


def merge_item(
    source: SourceItem,
    shell: Shell,
    interactions: dict,
    response_declarations: tuple[ResponseDeclaration, ...],
    widgets: dict,
    feedback: Feedback,
) -> AssessmentItem:
    """Assemble the shell and realized slot contents into one item.

    Args:
        source: Source question (identifier and title).
        shell: Shell phase output (body with slots).
        interactions: Slot -> realized interaction.
        response_declarations: Declarations realized with the interactions.
        widgets: Slot -> realized widget.
        feedback: Item-level correct/incorrect feedback.

    Returns:
        The merged item. It is not validated here; see ``validate_item``.
    """
    item = AssessmentItem(
        identifier=qti_item_identifier(source.id),
        title=source.title or source.id,
        body=shell.body,
        widgets=dict(widgets) or None,
        interactions=dict(interactions) or None,
        response_declarations=tuple(response_declarations),
        feedback=feedback,
    )
    logger.debug(
        "Merged %s: %d block(s), %d widget(s), %d interaction(s)",
        item.identifier, len(item.body), len(widgets), len(interactions),
    )
    return item


def _messages(failures: list[ValidationResult]) -> list[str]:
    return [
        f"{failure.message} (at {failure.location})" if failure.location else failure.message
        for failure in failures
    ]


def validate_item(item: AssessmentItem) -> None:
    """Check every invariant of *item*; nothing is repaired.

    Raises:
        StructuralError: If any slot, placement, response or interaction
            check fails. Every failure is listed in ``details``.
        BannedConstructError: If the structure is sound but a string field
            holds a forbidden construct.
    """
    structural: list[ValidationResult] = []
    for check in STRUCTURAL_CHECKS:
        structural.extend(check(item))
    if structural:
        first = structural[0]
        logger.info("Item %s failed %d structural check(s)", item.identifier, len(structural))
        raise StructuralError(first.message, location=first.location, details=_messages(structural[1:]))

    banned = check_banned_constructs(item)
    if banned:
        first = banned[0]
        logger.info("Item %s contains %d banned construct(s)", item.identifier, len(banned))
        raise BannedConstructError(first.message, location=first.location, details=_messages(banned[1:]))
    logger.debug("Item %s passed validation", item.identifier)
