"""Lint output formatters: human text, JSON, and reviewdog's rdjsonl."""

import dataclasses
import json
from enum import Enum

SEVERITY_ICONS = {"error": "✖", "warning": "⚠"}
SEVERITY_STYLES = {"error": "red", "warning": "yellow"}


class OutputFormat(str, Enum):
    human = "human"
    json = "json"
    rdjsonl = "rdjsonl"


def human_lines(outputs) -> list[tuple[str, str]]:
    """Return (line, rich style) pairs: an OK line per clean file, one line per diagnostic, then a summary."""
    lines = []
    errors = warnings = files = 0
    for output in outputs:
        flagged = {d.file_path for d in output.diagnostics}
        for path in output.files_analyzed:
            if path not in flagged:
                lines.append((f"✔ {path}: OK", "green"))
        for d in output.diagnostics:
            field_info = f" [{d.field}]" if d.field else ""
            icon = SEVERITY_ICONS.get(d.severity, "-")
            lines.append((
                f"{icon} {d.file_path}:{d.line}{field_info}: {d.message} ({d.rule_id})",
                SEVERITY_STYLES.get(d.severity, ""),
            ))
        files += len(output.files_analyzed)
        errors += output.total_errors
        warnings += output.total_warnings
    if files:
        style = "bold red" if errors else ("yellow" if warnings else "bold green")
        lines.append((f"{files} file(s) checked: {errors} error(s), {warnings} warning(s)", style))
    return lines


def format_human(outputs) -> str:
    return "\n".join(text for text, _ in human_lines(outputs))


def format_json(outputs) -> str:
    diagnostics = [dataclasses.asdict(d) for output in outputs for d in output.diagnostics]
    return json.dumps(diagnostics, indent=2)


def format_rdjsonl(outputs) -> str:
    """One reviewdog diagnostic per line (`reviewdog -f=rdjsonl`)."""
    lines = []
    for output in outputs:
        for d in output.diagnostics:
            lines.append(json.dumps({
                "message": d.message,
                "location": {"path": d.file_path, "range": {"start": {"line": d.line}}},
                "severity": "ERROR" if d.severity == "error" else "WARNING",
                "code": {"value": d.rule_id},
            }))
    return "\n".join(lines)


_FORMATTERS = {
    OutputFormat.human: format_human,
    OutputFormat.json: format_json,
    OutputFormat.rdjsonl: format_rdjsonl,
}


def format_output(outputs, output_format: OutputFormat) -> str:
    return _FORMATTERS[OutputFormat(output_format)](outputs)
