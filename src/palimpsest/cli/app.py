"""Main CLI application wiring for Palimpsest.

  palimpsest kinds
  palimpsest play session.yml --verbose
"""

import typer

app = typer.Typer(add_completion=False, help="Palimpsest: undo/redo history engine")


@app.callback()
def main():
    """Palimpsest CLI."""
    pass


# =============================================================================
# Top-level commands
# =============================================================================

from palimpsest.cli import kinds as kinds_cmd
from palimpsest.cli import play as play_cmd

kinds_cmd.register(app)
play_cmd.register(app)
