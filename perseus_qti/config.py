"""Configuration for the compilation core.

Loads settings from environment variables (prefix ``PERSEUS_QTI_``) or a
local ``.env`` file. Every knob has a default so the core runs without
any environment at all.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings

QTI_NAMESPACE = "http://www.imsglobal.org/xsd/imsqtiasi_v3p0"
MATHML_NAMESPACE = "http://www.w3.org/1998/Math/MathML"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
QTI_SCHEMA_LOCATION = (
    "http://www.imsglobal.org/xsd/imsqtiasi_v3p0 "
    "https://purl.imsglobal.org/spec/qti/v3p0/schema/xsd/imsqti_asiv3p0p1_v1p0.xsd "
    "http://www.w3.org/1998/Math/MathML "
    "https://purl.imsglobal.org/spec/mathml/v3p0/schema/xsd/mathml3.xsd"
)


class Settings(BaseSettings):
    """Compiler settings loaded from environment variables."""

    # Prompt/body dedup: Jaccard similarity at or above this removes the
    # body paragraph.
    paraphrase_threshold: float = 0.8

    # Slot filling
    max_slot_depth: int = 10

    # XML emission
    xml_lang: str = "en-US"
    identifier_prefix: str = "nice"
    widget_alt_template: str = "A visual element of type {widget_type}."
    emit_equivalent_mappings: bool = True

    # Item-level feedback used when the source provides none
    default_correct_feedback: str = "Correct! Well done."
    default_incorrect_feedback: str = "Not quite. Review the problem and try again."

    # Log level for the CLI when -v is not given
    log_level: str = "INFO"

    # Widget rendering (pixels of slack added around content extents)
    axis_viewbox_padding: float = 10.0

    class Config:
        """Pydantic settings configuration."""

        env_prefix = "PERSEUS_QTI_"
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
