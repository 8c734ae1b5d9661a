"""
Volume (RBD image) management commands.
"""

from typing import Optional

import typer

from ceph_rest.cli.lib.config import get_client
from ceph_rest.cli.lib.validators import parse_size, validate_name
from ceph_rest.client import RBDCreate, RBDUpdate, path_join

app = typer.Typer(help="Volume management commands")


def _validate(pool: str, name: str, namespace: Optional[str]) -> None:
    validate_name(pool, "Pool name")
    validate_name(name, "Image name")
    if namespace:
        validate_name(namespace, "Namespace")


@app.command()
def create(
    name: str = typer.Argument(..., help="Image name"),
    pool: str = typer.Option(..., "--pool", help="Pool name"),
    size: str = typer.Option(..., "--size", help="Size in bytes or with K/M/G/T suffix"),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="RBD namespace"),
):
    """
    Create a new volume.

    Waits until the server has finished creating the image.
    """
    try:
        _validate(pool, name, namespace)
        size_bytes = parse_size(size)

        typer.echo(f"Creating volume: {path_join(pool, namespace, name)} ({size_bytes} bytes)")

        with get_client() as client:
            client.images.create_image(
                RBDCreate(pool_name=pool, namespace=namespace, name=name, size=size_bytes)
            )

        typer.echo(f"Volume {name} created successfully")

    except Exception as e:
        typer.echo(f"Error creating volume: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def resize(
    name: str = typer.Argument(..., help="Image name"),
    pool: str = typer.Option(..., "--pool", help="Pool name"),
    size: Optional[str] = typer.Option(None, "--size", help="New size in bytes or with K/M/G/T suffix"),
    new_name: Optional[str] = typer.Option(None, "--new-name", help="Rename the image"),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="RBD namespace"),
):
    """
    Resize and/or rename a volume.
    """
    try:
        _validate(pool, name, namespace)
        if new_name:
            validate_name(new_name, "New image name")
        if size is None and not new_name:
            raise ValueError("Nothing to do: pass --size and/or --new-name")
        size_bytes = parse_size(size) if size is not None else None

        typer.echo(f"Updating volume: {path_join(pool, namespace, name)}")

        with get_client() as client:
            client.images.update_image(
                pool, namespace, name, RBDUpdate(name=new_name or name, size=size_bytes)
            )

        typer.echo(f"Volume {new_name or name} updated successfully")

    except Exception as e:
        typer.echo(f"Error updating volume: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def delete(
    name: str = typer.Argument(..., help="Image name"),
    pool: str = typer.Option(..., "--pool", help="Pool name"),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="RBD namespace"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """
    Delete a volume.
    """
    try:
        _validate(pool, name, namespace)
        image_spec = path_join(pool, namespace, name)

        if not yes:
            typer.confirm(f"Delete volume {image_spec}?", abort=True)

        typer.echo(f"Deleting volume: {image_spec}")

        with get_client() as client:
            client.images.delete_image(pool, namespace, name)

        typer.echo(f"Volume {name} deleted successfully")

    except typer.Abort:
        raise
    except Exception as e:
        typer.echo(f"Error deleting volume: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def show(
    name: str = typer.Argument(..., help="Image name"),
    pool: str = typer.Option(..., "--pool", help="Pool name"),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="RBD namespace"),
):
    """
    Show a volume.
    """
    try:
        _validate(pool, name, namespace)

        with get_client() as client:
            image = client.images.get_image(path_join(pool, namespace, name))

        typer.echo(f"Name:       {image.name}")
        typer.echo(f"Pool:       {image.pool_name}")
        typer.echo(f"Namespace:  {image.namespace or '-'}")
        typer.echo(f"Size:       {image.size}")
        typer.echo(f"Unique ID:  {image.unique_id}")
        typer.echo(f"Features:   {', '.join(image.features_name) or '-'}")

    except Exception as e:
        typer.echo(f"Error showing volume: {e}", err=True)
        raise typer.Exit(1)


@app.command("list")
def list_volumes(
    pool: Optional[str] = typer.Option(None, "--pool", help="Filter by pool name"),
):
    """
    List volumes.
    """
    try:
        with get_client() as client:
            images = client.images.list_images(pool)

        if not images:
            typer.echo("No volumes found")
            return

        typer.echo(f"{'IMAGE':<40} {'SIZE':>16}")
        for image in images:
            typer.echo(f"{image.image_spec:<40} {image.size:>16}")

    except Exception as e:
        typer.echo(f"Error listing volumes: {e}", err=True)
        raise typer.Exit(1)
