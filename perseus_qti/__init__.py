"""Perseus to QTI 3.0 compilation core.

Turns Perseus-shaped source questions into validated QTI 3.0 assessment
item XML: shell phase, widget mapping, content realization, merge and
validation, then deterministic XML emission with SVG widget rendering.
"""

__version__ = "0.1.0"
