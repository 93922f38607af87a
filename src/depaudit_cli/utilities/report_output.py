# depaudit_cli/utilities/report_output.py

import json
import os
import logging
from typing import List, Sequence

from ..exceptions import FileSystemError
from .audit_report.report_assembler import Report

logger = logging.getLogger("depaudit-cli")


def format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Plain-text grid with columns sized to their widest cell."""
    widths = [len(header) for header in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    separator = "+" + "+".join("-" * (width + 2) for width in widths) + "+"

    def _line(cells: Sequence[str]) -> str:
        return "| " + " | ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(cells)) + " |"

    lines: List[str] = [separator, _line(headers), separator]
    lines.extend(_line(row) for row in rows)
    lines.append(separator)
    return "\n".join(lines)


def render_table(report: Report) -> None:
    """Prints the report as a table, or the all-clear message when nothing was reported."""
    if report.is_empty:
        print(report.summary)
        return

    print("\n🚨 Vulnerabilities found:")
    print(format_table(report.headers, [row.as_list() for row in report.rows]))
    print(f"\n{report.summary}")
    breakdown = ", ".join(f"{severity.capitalize()}: {count}" for severity, count in report.severity_counts.items())
    print(f"Severity breakdown: {breakdown}")


def render_json(report: Report) -> None:
    print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))


RENDERERS = {
    "table": render_table,
    "json": render_json,
}


def display_report(report: Report, output_format: str = "table") -> None:
    renderer = RENDERERS.get(output_format)
    if renderer is None:
        raise ValueError(f"Unsupported output format '{output_format}'. Expected one of: {', '.join(RENDERERS)}")
    renderer(report)


def save_report_to_file(filepath: str, report: Report) -> None:
    """
    Writes the JSON report to a file, creating parent directories as needed.

    Raises:
        FileSystemError: If the file cannot be written
    """
    output_dir = os.path.dirname(filepath) or "."
    try:
        os.makedirs(output_dir, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
    except (IOError, OSError) as e:
        raise FileSystemError(f"Failed to save report to {filepath}: {e}", details={"path": filepath})
    logger.debug(f"Report written to {filepath}")
    print(f"Saved report to: {filepath}")
