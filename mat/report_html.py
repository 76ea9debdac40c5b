"""HTML rendering of the report tree.

Views appear in this order: dashboard, tests, authors, devices,
categories, exceptions.
"""

from __future__ import annotations

import html
from collections import Counter, defaultdict
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from mat.report import ReportCase, ReportEntry, ReportStep

DEFAULT_TITLE = "MAT Selenium Report"
DEFAULT_TIMESTAMP_FORMAT = "%b %d, %Y %H:%M:%S"

# Case-level outcomes shown in the summary tables
OUTCOMES = ("pass", "fail", "skip", "warning", "info")

_STANDARD_CSS = """
body { font-family: -apple-system, Segoe UI, Roboto, sans-serif; margin: 0; background: #f5f6f8; color: #222; }
header { background: #2c3e50; color: #fff; padding: 16px 24px; }
header h1 { margin: 0; font-size: 22px; }
header .meta { font-size: 13px; opacity: .85; margin-top: 4px; }
main { padding: 16px 24px; }
section { background: #fff; border-radius: 6px; padding: 12px 16px; margin-bottom: 16px; box-shadow: 0 1px 2px rgba(0,0,0,.08); }
h2 { font-size: 17px; margin: 4px 0 12px; }
table { border-collapse: collapse; width: 100%; font-size: 13px; }
th, td { text-align: left; padding: 6px 8px; border-bottom: 1px solid #e4e6ea; vertical-align: top; }
.chip { display: inline-block; padding: 2px 8px; border-radius: 10px; font-size: 12px; font-weight: 600; color: #fff; background: #7f8c8d; }
.chip.pass { background: #27ae60; } .chip.fail { background: #c0392b; }
.chip.skip { background: #2980b9; } .chip.warning { background: #e67e22; } .chip.info { background: #7f8c8d; }
details.case { border-left: 4px solid #7f8c8d; margin: 8px 0; padding: 4px 10px; }
details.case.pass { border-color: #27ae60; } details.case.fail { border-color: #c0392b; }
details.case.skip { border-color: #2980b9; } details.case.warning { border-color: #e67e22; }
.step { margin: 6px 0 6px 12px; }
.entry { margin: 2px 0 2px 12px; font-size: 13px; }
figure { margin: 6px 0; } figure img { max-width: 640px; border: 1px solid #ccc; }
"""

_DARK_CSS = """
body { background: #1e1f24; color: #ddd; }
section { background: #2a2c33; box-shadow: none; }
th, td { border-color: #3a3d45; }
header { background: #111; }
"""


def _esc(value: Any) -> str:
    return html.escape(str(value))


def _chip(status: str) -> str:
    return f"<span class='chip {_esc(status)}'>{_esc(status.upper())}</span>"


def _render_entry(entry: "ReportEntry", ts_format: str) -> list[str]:
    out = [
        "<div class='entry'>",
        f"{_chip(entry.status.value)} <small>{_esc(entry.timestamp.strftime(ts_format))}</small> "
        f"{_esc(entry.message)}",
    ]
    if entry.screenshot:
        cap = _esc(entry.caption or "")
        out.append(
            f"<figure><img src='data:image/png;base64,{_esc(entry.screenshot)}' alt='{cap}' />"
            f"<figcaption>{cap}</figcaption></figure>"
        )
    out.append("</div>")
    return out


def _render_step(step: "ReportStep", ts_format: str) -> list[str]:
    out = [f"<div class='step'>{_chip(step.status.value)} <b>{_esc(step.name)}</b>"]
    for entry in step.entries:
        out.extend(_render_entry(entry, ts_format))
    out.append("</div>")
    return out


def _render_case(case: "ReportCase", ts_format: str) -> list[str]:
    status = case.status.value
    out = [
        f"<details class='case {_esc(status)}'>",
        f"<summary>{_chip(status)} <b>{_esc(case.name)}</b> "
        f"&middot; {_esc(case.device)} &middot; {_esc(case.category)} &middot; "
        f"{_esc(case.author)} &middot; <small>{_esc(case.started.strftime(ts_format))}</small></summary>",
    ]
    for step in case.steps:
        out.extend(_render_step(step, ts_format))
    out.append("</details>")
    return out


def _summary_table(title: str, label: str, groups: dict[str, Counter]) -> list[str]:
    out = [f"<section id='{_esc(title.lower())}'><h2>{_esc(title)}</h2>", "<table>"]
    out.append(
        f"<tr><th>{_esc(label)}</th>"
        + "".join(f"<th>{_esc(o.capitalize())}</th>" for o in OUTCOMES)
        + "<th>Total</th></tr>"
    )
    for key in sorted(groups):
        counts = groups[key]
        out.append(
            f"<tr><td>{_esc(key)}</td>"
            + "".join(f"<td>{counts.get(o, 0)}</td>" for o in OUTCOMES)
            + f"<td>{sum(counts.values())}</td></tr>"
        )
    out.append("</table></section>")
    return out


def _group_by(cases: list["ReportCase"], attr: str) -> dict[str, Counter]:
    groups: dict[str, Counter] = defaultdict(Counter)
    for case in cases:
        groups[getattr(case, attr)][case.status.value] += 1
    return groups


def render_report(
    cases: list["ReportCase"],
    theme: dict[str, Any],
    started: Optional[datetime] = None,
) -> str:
    """Render *cases* into a standalone HTML document."""
    title = theme.get("documentTitle", DEFAULT_TITLE)
    report_name = theme.get("reportName", title)
    ts_format = theme.get("timeStampFormat", DEFAULT_TIMESTAMP_FORMAT)
    encoding = theme.get("encoding", "UTF-8")
    css = _STANDARD_CSS
    if str(theme.get("theme", "standard")).lower() == "dark":
        css += _DARK_CSS
    css += theme.get("css", "")

    totals = Counter(case.status.value for case in cases)
    finished = datetime.now()

    html_lines: list[str] = []
    html_lines.append(f"<!DOCTYPE html><html><head><meta charset='{_esc(encoding)}'>")
    html_lines.append("<meta name='viewport' content='width=device-width, initial-scale=1'>")
    html_lines.append(f"<title>{_esc(title)}</title>")
    html_lines.append(f"<style>{css}</style></head><body>")

    html_lines.append("<header>")
    html_lines.append(f"<h1>{_esc(report_name)}</h1>")
    html_lines.append("<div class='meta'>")
    if started is not None:
        html_lines.append(f"Started: {_esc(started.strftime(ts_format))} &nbsp;")
    html_lines.append(f"Finished: {_esc(finished.strftime(ts_format))}")
    html_lines.append("</div>")
    html_lines.append("</header>")
    html_lines.append("<main>")

    # Dashboard
    html_lines.append("<section id='dashboard'><h2>Dashboard</h2>")
    html_lines.append(f"<div class='chip'>Tests: {len(cases)}</div>")
    for outcome in OUTCOMES:
        if totals.get(outcome):
            html_lines.append(
                f"<div class='chip {outcome}'>{outcome.capitalize()}: {totals[outcome]}</div>"
            )
    html_lines.append("</section>")

    # Tests
    html_lines.append("<section id='tests'><h2>Tests</h2>")
    for case in cases:
        html_lines.extend(_render_case(case, ts_format))
    html_lines.append("</section>")

    html_lines.extend(_summary_table("Authors", "Author", _group_by(cases, "author")))
    html_lines.extend(_summary_table("Devices", "Device", _group_by(cases, "device")))
    html_lines.extend(_summary_table("Categories", "Category", _group_by(cases, "category")))

    # Exceptions
    exceptions: dict[str, list[str]] = defaultdict(list)
    for case in cases:
        for name in case.exceptions:
            exceptions[name].append(f"{case.name} ({case.device})")
    html_lines.append("<section id='exceptions'><h2>Exceptions</h2><table>")
    html_lines.append("<tr><th>Exception</th><th>Tests</th></tr>")
    for name in sorted(exceptions):
        tests = "<br>".join(_esc(t) for t in exceptions[name])
        html_lines.append(f"<tr><td>{_esc(name)}</td><td>{tests}</td></tr>")
    html_lines.append("</table></section>")

    html_lines.append("</main></body></html>")
    return "\n".join(html_lines)
