#!/usr/bin/env python3
"""
Excel Styles Interactive Demo

A guided tour through excelStyles rules for developers: every step
styles the same small export and shows what changed.
Run with: python demo.py            (in-process)
          python demo.py --api      (through a running server)
"""

import argparse
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

try:
    import requests
except ImportError:
    print("Missing 'requests' library. Install with: pip install requests")
    sys.exit(1)

try:
    from rich.console import Console
    from rich.panel import Panel
    from rich.table import Table
    from rich.syntax import Syntax
    from rich.prompt import Confirm
    from rich.box import ROUNDED, DOUBLE
except ImportError:
    print("Missing 'rich' library. Install with: pip install rich")
    sys.exit(1)

from services.excel_styles import ExcelStylesError, XlsxPackage, apply_excel_styles
from services.excel_styles.merge import describe_xf
from services.excel_styles.ooxml import find_child, find_children
from services.excel_styles.references import col_index_to_letters, split_cell_ref
from services.excel_styles.sample import build_export


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────

BASE_URL = "http://127.0.0.1:8000"
OUTPUT_DIR = Path("data/demo_outputs")
console = Console()

COLUMNS = ["Name", "Position", "Salary"]
DATA = [
    ["Tiger Nixon", "System Architect", 320800],
    ["Garrett Winters", "Accountant", 170750],
    ["Ashton Cox", "Junior Technical Author", 86000],
    ["Cedric Kelly", "Senior Javascript Developer", 433060],
    ["Airi Satou", "Accountant", 162700],
]
LAYOUT = {"title": "Staff", "header": True}


# ─────────────────────────────────────────────────────────────────────────────
# Data Classes
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class DemoStep:
    """A single styling step: the options sent and the cells to inspect."""
    title: str
    description: str
    options: dict
    inspect: list = field(default_factory=list)
    success_message: str = "✓ Styled!"


@dataclass
class DemoSession:
    """Tracks the current demo session state."""
    use_api: bool = False
    source: bytes = b""
    last_output: Optional[bytes] = None
    saved: list = field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# Demo Steps Definition
# ─────────────────────────────────────────────────────────────────────────────

STEPS = [
    DemoStep(
        title="Style the header row",
        description="'sh' selects the header row whatever the layout; smart rows skip the title.",
        options={
            "excelStyles": [
                {"cells": "sh", "style": {"font": {"bold": True, "color": "FFFFFF"}, "fill": {"pattern": {"color": "1F4E79"}}}},
            ],
        },
        inspect=["A1", "A2", "C2", "A3"],
    ),
    DemoStep(
        title="Number format on the last column",
        description="'s>1:>-0' is the last column from the first to the last data row.",
        options={
            "excelStyles": [{"cells": "s>1:>-0", "style": {"numFmt": '"$"#,##0'}}],
        },
        inspect=["C2", "C3", "C7"],
    ),
    DemoStep(
        title="Banded rows from a template",
        description="A template expands to ready-made rules: heading fill, bands on every other row, row borders.",
        options={"excelStyles": [{"template": "blue_medium"}]},
        inspect=["A2", "A3", "A4", "A5"],
    ),
    DemoStep(
        title="Conditional formatting",
        description="A rule with a condition becomes a <conditionalFormatting> block instead of cell styles.",
        options={
            "excelStyles": [
                {
                    "cells": "sC1:C-0",
                    "condition": {"type": "cellIs", "operator": "greaterThan", "formula": 300000},
                    "style": {"font": {"color": "9C0006"}, "fill": {"pattern": {"color": "FFC7CE"}}},
                },
            ],
        },
        inspect=["C3", "C6"],
    ),
    DemoStep(
        title="Insert a column",
        description="insertCells writes content; pushCol moves existing cells right and widens the title merge.",
        options={
            "insertCells": [
                {"cells": "B2", "content": "Office", "pushCol": True},
                {"cells": "sB1:B-0", "content": ["Tokyo", "London"], "pushCol": True},
            ],
            "excelStyles": [{"cells": "sh", "style": {"font": {"bold": True}}}],
        },
        inspect=["B2", "C2", "B3", "C3", "D3"],
    ),
    DemoStep(
        title="Print setup",
        description="pageStyle repeats the header on every printed page and sets page options.",
        options={
            "pageStyle": [
                {
                    "repeatHeading": True,
                    "sheet": {
                        "pageSetup": {"orientation": "landscape"},
                        "headerFooter": {"oddFooter": "&CPage &P of &N"},
                    },
                },
            ],
        },
        inspect=["A2"],
    ),
]


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────

def check_server() -> bool:
    """Check if the server is running."""
    try:
        response = requests.get(f"{BASE_URL}/", timeout=3)
        return response.status_code == 200
    except requests.exceptions.RequestException:
        return False


def format_json(data: Any) -> str:
    return json.dumps(data, indent=2)


def cell_value(pkg: XlsxPackage, col: int, row: int) -> str:
    cell = pkg.sheet.cell(col, row)
    if cell is None:
        return "[dim](no cell)[/dim]"
    inline = find_child(cell, "is")
    if inline is not None:
        return find_child(inline, "t").text or ""
    value = find_child(cell, "v")
    return value.text if value is not None else ""


def style_summary(pkg: XlsxPackage, index: Optional[int]) -> str:
    if index is None:
        return ""
    summary = describe_xf(pkg.styles, index)
    keep = ("numFmtId", "fontId", "fillId", "borderId", "alignment")
    return ", ".join(f"{key}={summary[key]}" for key in keep if key in summary)


def merged_options(step: DemoStep) -> dict:
    return {"layout": LAYOUT, **step.options}


def execute_step(step: DemoStep, session: DemoSession) -> tuple[bool, Any]:
    """Style the source workbook with the step's options."""
    options = merged_options(step)
    if session.use_api:
        try:
            response = requests.post(
                f"{BASE_URL}/styles/apply",
                files={"file": ("staff.xlsx", session.source)},
                data={"options": json.dumps(options)},
                timeout=60,
            )
        except requests.exceptions.ConnectionError:
            return False, "Connection failed - is the server running?"
        except requests.exceptions.Timeout:
            return False, "Request timed out"
        if response.status_code != 200:
            return False, response.json().get("detail", response.text)
        return True, response.content

    try:
        package = XlsxPackage.from_bytes(session.source)
        apply_excel_styles(package, options)
        return True, package.to_bytes()
    except ExcelStylesError as e:
        return False, str(e)


def save_output(step_num: int, step: DemoStep, data: bytes) -> Path:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    slug = step.title.lower().replace(" ", "_")
    path = OUTPUT_DIR / f"step{step_num}_{slug}.xlsx"
    path.write_bytes(data)
    return path


# ─────────────────────────────────────────────────────────────────────────────
# UI Components
# ─────────────────────────────────────────────────────────────────────────────

def show_header(session: DemoSession):
    """Display the demo header."""
    mode = f"through the API at {BASE_URL}" if session.use_api else "in-process"
    console.print()
    console.print(Panel(
        "[bold cyan]Excel Styles Interactive Demo[/bold cyan]\n"
        f"[dim]Styling a DataTables-style export {mode}[/dim]",
        box=DOUBLE,
        border_style="cyan",
        padding=(1, 2),
    ))


def show_server_status() -> bool:
    """Check and display server status."""
    console.print("\n[dim]Checking server status...[/dim]")
    if check_server():
        console.print(f"[green]✓ Server is running at {BASE_URL}[/green]\n")
        return True
    console.print(f"[red]✗ Server is not running at {BASE_URL}[/red]")
    console.print("\n[yellow]Start the server with:[/yellow]")
    console.print(Panel("uvicorn main:app --reload --port 8000", title="Command", border_style="yellow"))
    return False


def show_step_detail(step: DemoStep, step_num: int, total: int):
    console.print(Panel(
        f"[bold]{step.title}[/bold]\n[dim]{step.description}[/dim]",
        title=f"Step {step_num}/{total}",
        border_style="blue",
        box=ROUNDED,
    ))
    console.print(Syntax(format_json(merged_options(step)), "json", theme="monokai", word_wrap=True))


def show_cells(step: DemoStep, before: XlsxPackage, after: XlsxPackage):
    """Value and style of the inspected cells, before and after."""
    table = Table(title="Inspected cells", box=ROUNDED, border_style="blue")
    table.add_column("Cell", style="cyan")
    table.add_column("Value")
    table.add_column("Before")
    table.add_column("After", style="green")

    for ref in step.inspect:
        col, row = split_cell_ref(ref)
        table.add_row(
            ref,
            cell_value(after, col, row),
            style_summary(before, before.sheet.cell_style(col, row)),
            style_summary(after, after.sheet.cell_style(col, row)),
        )
    console.print(table)


def show_sheet_changes(after: XlsxPackage):
    """Worksheet-level results: merges, conditional formats, print titles."""
    sheet = after.sheet
    last = col_index_to_letters(max(sheet.last_column, 1))
    console.print(f"[dim]Extent: A1:{last}{sheet.last_row}[/dim]")
    merges = [merge.get("ref") for merge in sheet.merged_ranges()]
    if merges:
        console.print(f"[dim]Merged: {', '.join(merges)}[/dim]")
    for block in find_children(sheet.root, "conditionalFormatting"):
        console.print(f"[dim]Conditional format on {block.get('sqref')}[/dim]")
    defined_names = find_child(after.workbook, "definedNames")
    if defined_names is not None:
        for defined_name in defined_names:
            console.print(f"[dim]{defined_name.get('name')} = {defined_name.text}[/dim]")


def show_failure(message: str):
    console.print(f"\n[red]✗ {message}[/red]")
    console.print("[yellow]Troubleshooting:[/yellow]")
    console.print("  • Check the options above for a malformed envelope")


# ─────────────────────────────────────────────────────────────────────────────
# Workflow
# ─────────────────────────────────────────────────────────────────────────────

def run_linear_workflow(session: DemoSession, steps: list, assume_yes: bool):
    before = XlsxPackage.from_bytes(session.source)
    total = len(steps)

    for step_num, step in enumerate(steps, start=1):
        console.print()
        show_step_detail(step, step_num, total)

        success, result = execute_step(step, session)
        if not success:
            show_failure(result)
        else:
            session.last_output = result
            after = XlsxPackage.from_bytes(result)
            show_cells(step, before, after)
            show_sheet_changes(after)
            path = save_output(step_num, step, result)
            session.saved.append(path)
            console.print(f"\n[green]{step.success_message}[/green] [dim]Saved to {path}[/dim]")

        if step_num < total and not assume_yes:
            if not Confirm.ask("\nContinue to the next step?", default=True):
                break


def main():
    """Main entry point: build the sample export, then run the guided tour."""
    parser = argparse.ArgumentParser(description="Excel Styles interactive demo")
    parser.add_argument("--api", action="store_true", help=f"Send every step to the server at {BASE_URL}")
    parser.add_argument("--step", type=int, help="Run a single step (1-based)")
    parser.add_argument("-y", "--yes", action="store_true", help="Run without prompting between steps")
    args = parser.parse_args()

    session = DemoSession(use_api=args.api, source=build_export(COLUMNS, DATA, title=LAYOUT["title"]))
    show_header(session)

    if session.use_api and not show_server_status():
        if not Confirm.ask("\nContinue anyway?", default=False):
            console.print("[dim]Goodbye![/dim]")
            return

    steps = STEPS
    if args.step is not None:
        if not 1 <= args.step <= len(STEPS):
            console.print(f"[red]Step must be between 1 and {len(STEPS)}[/red]")
            return
        steps = [STEPS[args.step - 1]]

    run_linear_workflow(session, steps, args.yes)

    console.print(f"\n[dim]Demo finished. {len(session.saved)} workbook(s) written to {OUTPUT_DIR}/[/dim]")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted. Goodbye![/dim]")
