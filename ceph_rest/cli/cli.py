#!/usr/bin/env python3
"""
Main CLI entry point using Typer.
"""

import sys
from pathlib import Path
from typing import Optional

import typer

from ceph_rest.cli.commands import volume
from ceph_rest.cli.lib.config import set_config_file

app = typer.Typer(
    name="ceph-rest",
    help="Ceph RBD image management through the Ceph REST API",
    add_completion=False,
)


@app.callback()
def main_callback(
    config_file: Optional[Path] = typer.Option(
        None, "--config-file", help="Path to the ceph-rest INI config file"
    ),
):
    """Ceph RBD image management through the Ceph REST API."""
    set_config_file(config_file)


app.add_typer(volume.app, name="volume", help="RBD volume management commands")


def main() -> int:
    """Main entry point."""
    try:
        app()
        return 0
    except KeyboardInterrupt:
        typer.echo("\nOperation cancelled by user", err=True)
        return 130
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
