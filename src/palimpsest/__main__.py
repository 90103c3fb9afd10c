"""
Palimpsest CLI entrypoint.

Executed via:
  python -m palimpsest
"""

from palimpsest.cli.app import app

if __name__ == "__main__":
    app()
