"""
Module entry point for: python -m fdbparser

Allows running the parser directly as a module:
    python -m fdbparser parse <fdb_path> [options]
    python -m fdbparser to-md <input> <output> [options]
    python -m fdbparser batch <directory> [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
