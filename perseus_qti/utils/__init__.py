"""Shared helpers: logging setup, MathML/TeX handling and XML escaping."""

from perseus_qti.utils.logging_config import resolve_log_level, setup_logging
from perseus_qti.utils.mathml import MathMLError, mathml_to_text, normalize_mathml
from perseus_qti.utils.tex import TexError, tex_to_mathml
from perseus_qti.utils.xml_utils import (
    encode_data_uri,
    escape_attr,
    escape_text,
    format_number,
    sanitize_identifier,
)

__all__ = [
    # Logging
    "resolve_log_level",
    "setup_logging",
    # Math
    "MathMLError",
    "TexError",
    "mathml_to_text",
    "normalize_mathml",
    "tex_to_mathml",
    # XML
    "encode_data_uri",
    "escape_attr",
    "escape_text",
    "format_number",
    "sanitize_identifier",
]
