"""tlang Output Formatters — the session transcript.

Two output modes:
    text — prompt, confirmations and values the way a shell prints them (default)
    json — one JSON object per processed construct, no prompts
"""

from __future__ import annotations

import json
import os
import sys
from typing import Optional, TextIO, TYPE_CHECKING

if TYPE_CHECKING:
    from tlang.repl import Outcome


# ── ANSI color helpers ───────────────────────────────────────────────────

def color_enabled(mode: str = "auto", stream: Optional[TextIO] = None) -> bool:
    """Resolve a color mode (auto, always, never) against NO_COLOR and the stream."""
    if mode == "always":
        return True
    if mode == "never" or os.environ.get("NO_COLOR") is not None:
        return False
    stream = stream or sys.stdout
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _c(code: str, text: str, enabled: bool = True) -> str:
    if not enabled:
        return text
    return f"\033[{code}m{text}\033[0m"


def red(t: str, enabled: bool = True) -> str:
    return _c("31", t, enabled)


def green(t: str, enabled: bool = True) -> str:
    return _c("32", t, enabled)


def cyan(t: str, enabled: bool = True) -> str:
    return _c("36", t, enabled)


def bold(t: str, enabled: bool = True) -> str:
    return _c("1", t, enabled)


def dim(t: str, enabled: bool = True) -> str:
    return _c("2", t, enabled)


# ── Text formatter (default) ────────────────────────────────────────────

class TextFormatter:
    """Human-readable transcript."""

    def __init__(self, color: bool = False):
        self.color = color

    def prompt(self, text: str) -> str:
        return bold(text, self.color)

    def format_outcome(self, outcome: Outcome) -> str:
        from tlang.repl import OutcomeKind

        if outcome.kind == OutcomeKind.DEFINITION:
            lines = [green(f"Read function definition: {outcome.name}", self.color)]
            if outcome.ir:
                lines.append(dim(outcome.ir.rstrip("\n"), self.color))
            return "\n".join(lines)

        if outcome.kind == OutcomeKind.IMPORT:
            lines = [green(f"Parsed an import: {outcome.name}", self.color)]
            if outcome.ir:
                lines.append(dim(outcome.ir.rstrip("\n"), self.color))
            return "\n".join(lines)

        if outcome.kind == OutcomeKind.VALUE:
            return f"Evaluated to {outcome.value:f}"

        if outcome.kind == OutcomeKind.ERROR:
            return red(f"error: {outcome.error}", self.color)

        return cyan("exiting...", self.color)

    def format_dump(self, ir: str) -> str:
        return dim(ir.rstrip("\n"), self.color)


# ── JSON formatter ──────────────────────────────────────────────────────

class JsonFormatter:
    """One JSON object per line; prompts are suppressed."""

    def prompt(self, text: str) -> str:
        return ""

    def format_outcome(self, outcome: Outcome) -> str:
        return json.dumps(outcome.to_dict())

    def format_dump(self, ir: str) -> str:
        return json.dumps({"kind": "dump", "ir": ir})


def make_formatter(output_format: str = "text", color: str = "auto",
                   stream: Optional[TextIO] = None):
    """Create the formatter for an output format name."""
    if output_format == "json":
        return JsonFormatter()
    if output_format == "text":
        return TextFormatter(color=color_enabled(color, stream))
    raise ValueError(f"unknown output format: {output_format}")
