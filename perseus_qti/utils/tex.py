"""Convert the TeX subset used in Perseus content to presentation MathML.

Perseus question text embeds formulas as ``$...$`` TeX. The compiler never
lets TeX reach the emitted XML, so every formula is parsed here into a
MathML fragment. The conversion is structural: fractions, roots, scripts
and operators each map to their MathML element. Anything outside the
supported subset raises :class:`TexError` instead of being dropped.
"""

from __future__ import annotations

import html

SYMBOL_COMMANDS: dict[str, tuple[str, str]] = {
    # command: (element, text)
    "cdot": ("mo", "·"),
    "times": ("mo", "×"),
    "div": ("mo", "÷"),
    "pm": ("mo", "±"),
    "mp": ("mo", "∓"),
    "le": ("mo", "≤"),
    "leq": ("mo", "≤"),
    "ge": ("mo", "≥"),
    "geq": ("mo", "≥"),
    "ne": ("mo", "≠"),
    "neq": ("mo", "≠"),
    "lt": ("mo", "<"),
    "gt": ("mo", ">"),
    "approx": ("mo", "≈"),
    "sim": ("mo", "∼"),
    "to": ("mo", "→"),
    "rightarrow": ("mo", "→"),
    "leftarrow": ("mo", "←"),
    "angle": ("mo", "∠"),
    "perp": ("mo", "⊥"),
    "parallel": ("mo", "∥"),
    "triangle": ("mo", "△"),
    "circ": ("mo", "∘"),
    "degree": ("mo", "°"),
    "infty": ("mi", "∞"),
    "pi": ("mi", "π"),
    "theta": ("mi", "θ"),
    "alpha": ("mi", "α"),
    "beta": ("mi", "β"),
    "gamma": ("mi", "γ"),
    "delta": ("mi", "δ"),
    "Delta": ("mi", "Δ"),
    "lambda": ("mi", "λ"),
    "mu": ("mi", "μ"),
    "sigma": ("mi", "σ"),
    "%": ("mo", "%"),
    "$": ("mo", "$"),
    "{": ("mo", "{"),
    "}": ("mo", "}"),
    "|": ("mo", "‖"),
}

SPACING_COMMANDS = frozenset({",", ";", "!", ":", " ", "quad", "qquad"})
FRACTION_COMMANDS = frozenset({"frac", "dfrac", "tfrac"})
STYLE_COMMANDS = frozenset({"displaystyle", "textstyle"})
FUNCTION_NAMES = frozenset({"sin", "cos", "tan", "log", "ln", "exp"})
OPERATOR_CHARS = "+-=<>()[],/*|!:;'?"


class TexError(ValueError):
    """Raised when TeX uses a construct outside the supported subset."""


def tex_to_mathml(tex: str) -> str:
    """Convert a TeX formula into a MathML fragment (children of ``<math>``).

    Args:
        tex: Formula source without the surrounding ``$`` delimiters.

    Returns:
        MathML markup, e.g. ``<mfrac><mn>1</mn><mn>2</mn></mfrac>``.

    Raises:
        TexError: On unsupported commands or unbalanced groups.
    """
    parser = _TexParser(tex)
    nodes = parser.parse_sequence(stop=None)
    if parser.pos < len(tex):
        raise TexError(f"Unexpected '{tex[parser.pos]}' at position {parser.pos} in: {tex}")
    return "".join(nodes)


def _element(tag: str, text: str) -> str:
    return f"<{tag}>{html.escape(text, quote=False)}</{tag}>"


def _row(nodes: list[str]) -> str:
    if len(nodes) == 1:
        return nodes[0]
    return f"<mrow>{''.join(nodes)}</mrow>"


class _TexParser:
    """Recursive-descent parser over a TeX string."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.pos = 0

    def _peek(self) -> str:
        return self.source[self.pos] if self.pos < len(self.source) else ""

    def parse_sequence(self, stop: str | None) -> list[str]:
        nodes: list[str] = []
        while self.pos < len(self.source):
            char = self._peek()
            if stop is not None and char == stop:
                return nodes
            if char == "}" and stop != "}":
                raise TexError(f"Unbalanced '}}' in: {self.source}")
            if char in "^_":
                self.pos += 1
                if not nodes:
                    raise TexError(f"Script without a base in: {self.source}")
                nodes[-1] = self._attach_script(nodes[-1], char)
                continue
            atom = self._parse_atom()
            if atom is not None:
                nodes.append(atom)
        if stop is not None:
            raise TexError(f"Missing '{stop}' in: {self.source}")
        return nodes

    def _attach_script(self, base: str, kind: str) -> str:
        script = self._parse_argument()
        if kind == "_" and self._peek() == "^":
            self.pos += 1
            sup = self._parse_argument()
            return f"<msubsup>{base}{script}{sup}</msubsup>"
        if kind == "^" and self._peek() == "_":
            self.pos += 1
            sub = self._parse_argument()
            return f"<msubsup>{base}{sub}{script}</msubsup>"
        tag = "msup" if kind == "^" else "msub"
        return f"<{tag}>{base}{script}</{tag}>"

    def _parse_argument(self) -> str:
        self._skip_spaces()
        if self._peek() == "{":
            self.pos += 1
            nodes = self.parse_sequence(stop="}")
            self.pos += 1
            if not nodes:
                return "<mrow></mrow>"
            return _row(nodes)
        if self._peek() == "\\":
            atom = self._parse_atom()
            if atom is None:
                raise TexError(f"Empty argument in: {self.source}")
            return atom
        char = self._peek()
        if not char:
            raise TexError(f"Missing argument at end of: {self.source}")
        self.pos += 1
        return self._single_char(char)

    def _skip_spaces(self) -> None:
        while self._peek().isspace():
            self.pos += 1

    def _single_char(self, char: str) -> str:
        if char.isdigit():
            return _element("mn", char)
        if char.isalpha():
            return _element("mi", char)
        return _element("mo", char)

    def _parse_atom(self) -> str | None:
        char = self._peek()
        if char.isspace():
            self.pos += 1
            return None
        if char == "{":
            self.pos += 1
            nodes = self.parse_sequence(stop="}")
            self.pos += 1
            return _row(nodes) if nodes else None
        if char == "\\":
            return self._parse_command()
        if char.isdigit() or (char == "." and self.source[self.pos + 1:self.pos + 2].isdigit()):
            return self._parse_number()
        if char.isalpha():
            self.pos += 1
            return _element("mi", char)
        if char in OPERATOR_CHARS:
            self.pos += 1
            return _element("mo", char)
        if char == "&" or char == "#" or char == "~":
            raise TexError(f"Unsupported character '{char}' in: {self.source}")
        self.pos += 1
        return _element("mo", char)

    def _parse_number(self) -> str:
        start = self.pos
        seen_point = False
        while self.pos < len(self.source):
            char = self.source[self.pos]
            if char.isdigit():
                self.pos += 1
            elif char == "." and not seen_point and self.source[self.pos + 1:self.pos + 2].isdigit():
                seen_point = True
                self.pos += 1
            elif char == "," and self.source[self.pos + 1:self.pos + 4].isdigit() \
                    and len(self.source[self.pos + 1:self.pos + 4]) == 3 \
                    and not self.source[self.pos + 4:self.pos + 5].isdigit():
                # Thousands separator: 1,000
                self.pos += 1
            else:
                break
        return _element("mn", self.source[start:self.pos])

    def _read_command_name(self) -> str:
        self.pos += 1  # backslash
        start = self.pos
        if self.pos < len(self.source) and not self.source[self.pos].isalpha():
            self.pos += 1
            return self.source[start:self.pos]
        while self.pos < len(self.source) and self.source[self.pos].isalpha():
            self.pos += 1
        name = self.source[start:self.pos]
        if not name:
            raise TexError(f"Dangling backslash in: {self.source}")
        return name

    def _parse_command(self) -> str | None:
        name = self._read_command_name()
        if name in SPACING_COMMANDS or name in STYLE_COMMANDS:
            return None
        if name in FRACTION_COMMANDS:
            numerator = self._parse_argument()
            denominator = self._parse_argument()
            return f"<mfrac>{numerator}{denominator}</mfrac>"
        if name == "sqrt":
            self._skip_spaces()
            if self._peek() == "[":
                self.pos += 1
                index_nodes = self.parse_sequence(stop="]")
                self.pos += 1
                radicand = self._parse_argument()
                return f"<mroot>{radicand}{_row(index_nodes)}</mroot>"
            return f"<msqrt>{self._parse_argument()}</msqrt>"
        if name in ("left", "right"):
            self._skip_spaces()
            if self._peek() == "\\":
                delimiter = self._read_command_name()
                if delimiter not in ("{", "}", "|"):
                    raise TexError(f"Unsupported delimiter '\\{delimiter}' in: {self.source}")
                return _element("mo", delimiter if delimiter != "|" else "‖")
            char = self._peek()
            if not char:
                raise TexError(f"Missing delimiter after \\{name} in: {self.source}")
            self.pos += 1
            if char == ".":
                return None
            return _element("mo", char)
        if name in ("text", "textbf", "mathrm", "operatorname"):
            return self._parse_text_argument()
        if name == "overline":
            return f"<mover>{self._parse_argument()}<mo>¯</mo></mover>"
        if name in FUNCTION_NAMES:
            return _element("mi", name)
        if name in SYMBOL_COMMANDS:
            tag, text = SYMBOL_COMMANDS[name]
            return _element(tag, text)
        raise TexError(f"Unsupported TeX command '\\{name}' in: {self.source}")

    def _parse_text_argument(self) -> str:
        self._skip_spaces()
        if self._peek() != "{":
            raise TexError(f"\\text requires a braced argument in: {self.source}")
        depth = 0
        start = self.pos + 1
        while self.pos < len(self.source):
            char = self.source[self.pos]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    text = self.source[start:self.pos]
                    self.pos += 1
                    return _element("mtext", text)
            self.pos += 1
        raise TexError(f"Unterminated \\text argument in: {self.source}")
