"""
console.py — Terminal channel.

Renders each delivery as one block of text:

    info [development][server]: Deployed
    Repeated 2 more times

    Context:
    {
        "version": "1.4.2"
    }

Styled deliveries read ``title``, ``text`` and ``description`` from the
template; unstyled deliveries print their messages separated by spaces.
ANSI colours are used when the stream is a terminal.
"""

from __future__ import annotations

import json
import sys
import traceback
from typing import Any, Dict, Iterable, List, Optional, TextIO

from signal_logger.engine.models import LogLabel, Severity
from signal_logger.utils.pluralization import describe_duplicates

GRAY = "\033[90m"
RESET = "\033[0m"

KIND_COLORS = {
    Severity.DEBUG:   "\033[35m",     # Magenta
    Severity.LOG:     "",
    Severity.INFO:    "\033[1;34m",   # Blue bold
    Severity.WARN:    "\033[1;33m",   # Yellow bold
    Severity.ERROR:   "\033[1;31m",   # Red bold
    Severity.SUCCESS: "\033[1;32m",   # Green bold
}

KIND_NAMES = {
    Severity.DEBUG:   "debug",
    Severity.INFO:    "info",
    Severity.WARN:    "warning",
    Severity.ERROR:   "error",
    Severity.SUCCESS: "success",
}

STDERR_KINDS = (Severity.WARN, Severity.ERROR)


def _stringify(value: Any) -> str:
    if isinstance(value, BaseException):
        return "".join(
            traceback.format_exception(type(value), value, value.__traceback__)
        ).rstrip()
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=4, default=str, ensure_ascii=False)


class ConsoleChannel:
    """Writes deliveries to a text stream."""

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        *,
        color: Optional[bool] = None,
        enabled: Optional[bool] = None,
    ):
        self.enabled = enabled
        self._stream = stream
        self._color = color

    # ── Severity operations ──

    def debug(self, delivery: Dict[str, Any]) -> None:
        self._write(Severity.DEBUG, delivery)

    def log(self, delivery: Dict[str, Any]) -> None:
        self._write(Severity.LOG, delivery)

    def info(self, delivery: Dict[str, Any]) -> None:
        self._write(Severity.INFO, delivery)

    def warn(self, delivery: Dict[str, Any]) -> None:
        self._write(Severity.WARN, delivery)

    def error(self, delivery: Dict[str, Any]) -> None:
        self._write(Severity.ERROR, delivery)

    def success(self, delivery: Dict[str, Any]) -> None:
        self._write(Severity.SUCCESS, delivery)

    # ── Rendering ──

    def render(self, kind: Severity, delivery: Dict[str, Any], *, color: bool = False) -> str:
        """Build the text block for one delivery."""
        template = delivery.get("template")
        labels = (template or delivery).get("labels") or []

        head = self._title(kind, labels, color)
        paragraphs: List[str] = []

        if template is None:
            body = " ".join(_stringify(m) for m in delivery.get("messages", []))
            first = " ".join(part for part in (head, body) if part)
        else:
            first = " ".join(
                part for part in (head, template.get("title"), template.get("text"))
                if part
            )

        duplicates = describe_duplicates(delivery.get("number_of_calls"))
        paragraphs.append("\n".join(p for p in (first, duplicates) if p))

        if template is not None:
            if template.get("description"):
                paragraphs.append(str(template["description"]))
            if template.get("error") is not None:
                paragraphs.append(f"Error:\n{_stringify(template['error'])}")
            if template.get("context"):
                paragraphs.append(f"Context:\n{_stringify(template['context'])}")

        return "\n\n".join(p for p in paragraphs if p)

    def _title(self, kind: Severity, labels: Iterable[Any], color: bool) -> str:
        stringified = "".join(
            f"[{LogLabel.coerce(label).value}]" for label in labels
        )
        kind_name = KIND_NAMES.get(kind)

        if color:
            if stringified:
                stringified = f"{GRAY}{stringified}:{RESET}"
            if kind_name:
                kind_name = f"{KIND_COLORS[kind]}{kind_name}{RESET}"
        elif stringified:
            stringified = f"{stringified}:"

        if kind_name and stringified:
            return f"{kind_name} {stringified}"
        if kind_name:
            return f"{kind_name}:"
        return stringified

    def _write(self, kind: Severity, delivery: Dict[str, Any]) -> None:
        stream = self._stream
        if stream is None:
            stream = sys.stderr if kind in STDERR_KINDS else sys.stdout

        color = self._color
        if color is None:
            color = hasattr(stream, "isatty") and stream.isatty()

        print(self.render(kind, delivery, color=color), file=stream)
