"""Kinds command: palimpsest kinds

Lists entry kinds and composite masks usable as filters.
"""

from __future__ import annotations

import typer

from palimpsest.history.kinds import COMPOSITES, single_kinds


def register(app: typer.Typer) -> None:
    @app.command()
    def kinds() -> None:
        """List entry kinds and composite masks."""
        print("Kinds:")
        for kind in single_kinds():
            print(f"  {kind.name.lower():<12} {int(kind):>6}")

        print("\nMasks:")
        for mask in COMPOSITES:
            members = "|".join(k.name.lower() for k in single_kinds() if k & mask)
            print(f"  {mask.name.lower():<12} {int(mask):>6}  {members}")
