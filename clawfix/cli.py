"""CLI entry point for clawfix."""

from __future__ import annotations

import json
import logging
import sqlite3
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

import clawfix

app = typer.Typer(
    name="clawfix",
    help="Diagnose OpenClaw installations and generate fix scripts.",
    no_args_is_help=True,
)
console = Console()

_SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug logging"
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _open_service(db: Optional[str], model: Optional[str] = None, no_ai: bool = False):
    from clawfix.config import load_settings, resolve_db_path, without_ai
    from clawfix.data.store import DataStore
    from clawfix.service import build_service

    db_path = resolve_db_path(db)
    store = None
    if db_path:
        try:
            store = DataStore(db_path)
        except (OSError, sqlite3.Error) as e:
            console.print(f"[yellow]Running without persistence ({e})[/]")
    settings = load_settings(store, db_path=db, model=model)
    if no_ai:
        settings = without_ai(settings)
    return build_service(settings, backend=store)


def _read_payload(path: str) -> object:
    try:
        if path == "-":
            return json.load(sys.stdin)
        with open(path) as f:
            return json.load(f)
    except OSError as e:
        console.print(f"[red]Cannot read {path}: {e}[/]")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]{path} is not valid JSON: {e}[/]")
        raise typer.Exit(1)


@app.command()
def diagnose(
    snapshot: str = typer.Argument(
        ..., help="Diagnostic snapshot JSON file ('-' for stdin)"
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write the fix script to this file"
    ),
    as_json: bool = typer.Option(
        False, "--json", help="Print the result as JSON"
    ),
    model: Optional[str] = typer.Option(
        None, "--model", "-m", help="Model for AI analysis"
    ),
    no_ai: bool = typer.Option(
        False, "--no-ai", help="Pattern matching only"
    ),
    db: Optional[str] = typer.Option(
        None, "--db", help="Database path ('off' to disable persistence)"
    ),
) -> None:
    """Diagnose a snapshot and generate a fix script."""
    payload = _read_payload(snapshot)
    service = _open_service(db, model=model, no_ai=no_ai)
    try:
        response = service.diagnose(payload, user_agent="clawfix-cli")
    finally:
        service.close()

    if not response.ok:
        console.print(f"[red]Error: {response.body['error']}[/]")
        for key in ("message", "hint"):
            if response.body.get(key):
                console.print(f"[dim]{response.body[key]}[/]")
        raise typer.Exit(1)

    result = response.body
    if output:
        with open(output, "w") as f:
            f.write(result["fixScript"])

    if as_json:
        console.print_json(json.dumps(result))
        return

    console.print(f"[bold]Fix ID:[/] {result['fixId']}")
    console.print(f"[bold]Engine:[/] {result['model']}\n")
    if result["knownIssues"]:
        table = Table(title=f"{result['issuesFound']} issue(s) found")
        table.add_column("Severity")
        table.add_column("Id", style="cyan")
        table.add_column("Title")
        for issue in result["knownIssues"]:
            style = _SEVERITY_STYLES.get(issue["severity"], "")
            table.add_row(
                f"[{style}]{issue['severity']}[/]", issue["id"], issue["title"]
            )
        console.print(table)
    else:
        console.print("[green]No known issues detected.[/]")

    console.print(f"\n{result['analysis']}")
    if result["aiInsights"]:
        console.print(f"\n[bold]Insights[/]\n{result['aiInsights']}")
    if output:
        console.print(f"\n[green]Fix script saved to: {output}[/]")
    else:
        console.print(
            f"\n[dim]Get the script with: clawfix fix {result['fixId']} --script[/]"
        )


@app.command()
def fix(
    fix_id: str = typer.Argument(..., help="Fix ID from a previous diagnosis"),
    script: bool = typer.Option(
        False, "--script", help="Print only the bash script"
    ),
    db: Optional[str] = typer.Option(None, "--db", help="Database path"),
) -> None:
    """Show a stored diagnosis."""
    service = _open_service(db, no_ai=True)
    try:
        response = service.get_fix(fix_id, fmt="script" if script else None)
    finally:
        service.close()

    if not response.ok:
        console.print(f"[red]{response.body['error']}[/]")
        raise typer.Exit(1)

    if script:
        # Plain stdout so the output can be piped into bash
        sys.stdout.write(response.body)
    else:
        console.print_json(json.dumps(response.body))


@app.command()
def feedback(
    fix_id: str = typer.Argument(..., help="Fix ID the feedback is about"),
    success: bool = typer.Option(
        ..., "--success/--failed", help="Did the fix work?"
    ),
    remaining: Optional[int] = typer.Option(
        None, "--remaining", help="Issues still present"
    ),
    comment: Optional[str] = typer.Option(None, "--comment", help="Free text"),
    db: Optional[str] = typer.Option(None, "--db", help="Database path"),
) -> None:
    """Report whether a fix worked."""
    body: dict[str, object] = {"success": success}
    if remaining is not None:
        body["issuesRemaining"] = remaining
    if comment:
        body["comment"] = comment

    service = _open_service(db, no_ai=True)
    try:
        service.feedback(fix_id, body=body)
    finally:
        service.close()
    console.print(f"[green]Feedback recorded for {fix_id}[/]")


@app.command()
def stats(
    db: Optional[str] = typer.Option(None, "--db", help="Database path"),
) -> None:
    """Show pattern statistics."""
    service = _open_service(db)
    try:
        body = service.stats().body
    finally:
        service.close()

    console.print(
        f"Diagnoses: {body['totalDiagnoses']} "
        f"(last 24h: {body['last24h']})"
    )
    if not body["persistent"]:
        console.print("[yellow]No database: figures cover this process only.[/]")

    table = Table(title="Top Issues")
    table.add_column("Id", style="cyan")
    table.add_column("Severity")
    table.add_column("Detected", justify="right")
    table.add_column("Fixed", justify="right")
    table.add_column("Success", justify="right")
    for row in body["topIssues"]:
        rate = row.get("success_rate")
        table.add_row(
            row["id"],
            row["severity"],
            str(row["times_detected"]),
            str(row.get("times_fixed") or 0),
            f"{rate * 100:.0f}%" if rate is not None else "-",
        )
    console.print(table)


@app.command()
def rules() -> None:
    """List the known-issue rules."""
    from clawfix.core.rules import RULES

    table = Table(title="Known Issues")
    table.add_column("Id", style="cyan")
    table.add_column("Severity")
    table.add_column("Title")
    for rule in RULES:
        style = _SEVERITY_STYLES.get(rule.severity.value, "")
        table.add_row(rule.id, f"[{style}]{rule.severity.value}[/]", rule.title)
    console.print(table)


@app.command()
def config(
    action: str = typer.Argument(
        "get", help="Action: get or set"
    ),
    key: Optional[str] = typer.Argument(
        None, help="Config key (model, provider, base-url, timeout, public-url)"
    ),
    value: Optional[str] = typer.Argument(
        None, help="Value to set"
    ),
    db: Optional[str] = typer.Option(None, "--db", help="Database path"),
) -> None:
    """View or modify configuration."""
    from clawfix.config import CONFIG_KEYS, resolve_db_path
    from clawfix.data.store import DataStore

    db_path = resolve_db_path(db)
    if db_path is None:
        console.print("[red]Persistence is off; there is no config to edit.[/]")
        raise typer.Exit(1)
    store = DataStore(db_path)

    try:
        if action == "get":
            if key:
                val = store.get_config(key)
                if val is not None:
                    console.print(f"{key} = {val}")
                else:
                    console.print(f"[yellow]{key} is not set[/]")
            else:
                for k in CONFIG_KEYS:
                    val = store.get_config(k)
                    console.print(f"{k} = {val or '(not set)'}")
        elif action == "set":
            if not key or value is None:
                console.print("[red]Usage: clawfix config set <key> <value>[/]")
                raise typer.Exit(1)
            if key not in CONFIG_KEYS:
                console.print(
                    f"[red]Unknown config key: {key}. "
                    f"Valid keys: {', '.join(CONFIG_KEYS)}[/]"
                )
                raise typer.Exit(1)
            if key == "timeout":
                try:
                    if float(value) <= 0:
                        raise ValueError(value)
                except ValueError:
                    console.print("[red]Timeout must be a positive number of seconds[/]")
                    raise typer.Exit(1)
            store.set_config(key, value)
            console.print(f"[green]Set {key} = {value}[/]")
        else:
            console.print("[red]Unknown action. Use 'get' or 'set'.[/]")
            raise typer.Exit(1)
    finally:
        store.close()


@app.command()
def version() -> None:
    """Print version."""
    console.print(f"clawfix {clawfix.__version__}")


if __name__ == "__main__":
    app()
