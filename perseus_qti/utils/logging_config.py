"""Logging setup for compilation runs.

Library modules only call ``logging.getLogger(__name__)``. The
``compile_items`` CLI calls :func:`setup_logging` once per run; its level
comes from ``-v`` or else from ``PERSEUS_QTI_LOG_LEVEL``.
"""

from __future__ import annotations

import logging

from perseus_qti.config import get_settings

COMPILER_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_log_level(verbose: bool = False, level: int | str | None = None) -> int:
    """Numeric level for a run: ``verbose`` wins, then *level*, then settings.

    Raises:
        ValueError: If a level name is not one ``logging`` knows.
    """
    if verbose:
        return logging.DEBUG
    if level is None:
        level = get_settings().log_level
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level '{level}'")
    return resolved


def setup_logging(verbose: bool = False, level: int | str | None = None) -> int:
    """Configure root logging for a compilation run.

    Returns:
        The level that was applied.
    """
    effective_level = resolve_log_level(verbose, level)
    logging.basicConfig(level=effective_level, format=COMPILER_LOG_FORMAT)
    return effective_level
