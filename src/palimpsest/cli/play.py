"""Play command: palimpsest play <script.yml> [--config PATH] [--verbose]

Runs a scripted editing session against a fresh history and prints the
resulting document and both stacks. Nothing is persisted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
import yaml

from palimpsest.config import load_config
from palimpsest.history import Entry, HistoryError
from palimpsest.session import Session, SetValue, parse_steps


logger = logging.getLogger(__name__)


def describe(entry: Entry) -> str:
    kind = entry.kind.name.lower() if entry.kind.name else str(int(entry.kind))
    if entry.is_boundary:
        return f"[{kind}] ── group ──"
    payload = entry.payload
    if isinstance(payload, SetValue):
        return f"[{kind}] {payload.key}: {payload.old!r} → {payload.new!r}  (t={entry.timestamp:g})"
    return f"[{kind}] {payload!r}  (t={entry.timestamp:g})"


def _print_stack(title: str, entries: tuple[Entry, ...]) -> None:
    print(f"\n{title} ({len(entries)}):")
    if not entries:
        print("  (empty)")
        return
    for entry in entries:
        print(f"  • {describe(entry)}")


def register(app: typer.Typer) -> None:
    @app.command()
    def play(
        script: Path = typer.Argument(help="YAML session script"),
        config: Optional[Path] = typer.Option(
            None, "--config", help="YAML config file with a 'history:' section"
        ),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine activity"),
    ) -> None:
        """Run a scripted editing session and show the resulting history."""
        try:
            cfg = load_config(config)
        except (RuntimeError, ValueError, yaml.YAMLError) as e:
            print(f"Error: {e}")
            raise typer.Exit(1)

        logging.basicConfig(
            level=logging.DEBUG if verbose else cfg.log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        if not script.exists():
            print(f"Error: script not found: {script}")
            raise typer.Exit(1)

        try:
            steps = parse_steps(yaml.safe_load(script.read_text()))
        except (ValueError, yaml.YAMLError) as e:
            print(f"Error: {e}")
            raise typer.Exit(1)

        session = Session(config=cfg)
        for n, step in enumerate(steps, 1):
            try:
                session.dispatch(step)
            except HistoryError as e:
                logger.exception("Session failed at step %d", n)
                print(f"Error at step {n}: {e}")
                raise typer.Exit(1)

        undo, redo = session.history.snapshot()

        print(f"✓ Played {len(steps)} steps ({session.refreshes} replays)")
        print("\nDocument:")
        if not session.document.values:
            print("  (empty)")
        for key, value in sorted(session.document.values.items()):
            print(f"  {key} = {value!r}")

        _print_stack("Undo", undo)
        _print_stack("Redo", redo)

        session.history.teardown()
