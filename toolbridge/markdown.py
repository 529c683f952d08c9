"""
Append-only Markdown document builder used by every renderer.

Renderers never concatenate strings by hand; they push lines into a
MarkdownDocument in section order and call render() once at the end. Helper
methods skip absent values so "omit missing optional fields" is the default
behaviour rather than something each renderer re-implements.
"""

import html
import re

_TAG = re.compile(r"<[^>]*>")
_SPACES = re.compile(r"[ \t]{2,}")


def strip_tags(value: str) -> str:
    """Remove HTML tags and decode entities (e.g. Directions step text)."""
    cleaned = html.unescape(_TAG.sub(" ", value))
    return _SPACES.sub(" ", cleaned).strip()


def is_present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return bool(value)
    return True


def format_number(value) -> str:
    """Render provider numbers verbatim, dropping a useless trailing .0."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class MarkdownDocument:
    def __init__(self) -> None:
        self._parts: list[str] = []

    def heading(self, text: str, level: int = 1) -> "MarkdownDocument":
        self._parts.append(f"{'#' * level} {text}\n")
        return self

    def section(self, text: str, level: int = 2) -> "MarkdownDocument":
        """A heading followed by a blank line, for list-style sections."""
        self._parts.append(f"{'#' * level} {text}\n\n")
        return self

    def title(self, text: str) -> "MarkdownDocument":
        return self.section(text, level=1)

    def line(self, text: str) -> "MarkdownDocument":
        # Two trailing spaces force a Markdown hard line break.
        self._parts.append(f"{text}  \n")
        return self

    def raw(self, text: str) -> "MarkdownDocument":
        self._parts.append(text)
        return self

    def field(self, label: str, value, suffix: str = "") -> "MarkdownDocument":
        if is_present(value):
            self.line(f"{label}: {format_number(value)}{suffix}")
        return self

    def bold_field(self, label: str, value) -> "MarkdownDocument":
        if is_present(value):
            self._parts.append(f"**{label}**: {format_number(value)}\n")
        return self

    def bullet(self, text: str) -> "MarkdownDocument":
        self._parts.append(f"- {text}\n")
        return self

    def numbered(self, index: int, text: str) -> "MarkdownDocument":
        self._parts.append(f"{index}. {text}\n")
        return self

    def blank(self) -> "MarkdownDocument":
        self._parts.append("\n")
        return self

    def rule(self) -> "MarkdownDocument":
        self._parts.append("---\n\n")
        return self

    def render(self) -> str:
        return "".join(self._parts)
