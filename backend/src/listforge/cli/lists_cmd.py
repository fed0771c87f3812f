"""List metadata CLI commands."""

from pathlib import Path

import click

from listforge.metadata.loader import ListMetadataLoader


def _resolve_metadata_path() -> Path:
    """Resolve the metadata path from cwd."""
    cwd = Path.cwd()
    if cwd.name == "backend":
        base_path = cwd.parent
    else:
        base_path = cwd
    return base_path / "metadata"


@click.group()
def lists():
    """List metadata commands."""
    pass


@lists.command()
@click.option(
    "--path",
    "metadata_path",
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Metadata directory (defaults to ./metadata).",
)
def validate(metadata_path: Path | None):
    """Load list YAML files and check them for structural errors."""
    metadata_path = metadata_path or _resolve_metadata_path()
    if not metadata_path.exists():
        click.echo(f"Error: Metadata directory not found at {metadata_path}", err=True)
        raise SystemExit(1)

    loader = ListMetadataLoader(metadata_path)
    try:
        loader.load_all()
    except (ValueError, KeyError) as e:
        click.echo(click.style(f"Failed to load lists: {e}", fg="red"), err=True)
        raise SystemExit(1)

    errors = loader.validate()
    for error in errors:
        click.echo(click.style(f"  ✗ {error}", fg="red"))
    if errors:
        click.echo(click.style(f"\n{len(errors)} error(s) found", fg="red", bold=True))
        raise SystemExit(1)

    keys = loader.list_keys()
    click.echo(f"Loaded {len(keys)} lists:")
    for key in sorted(keys):
        config = loader.get_list(key)
        refs = ", ".join(f"{f.name} -> {f.ref}" for f in config.relationships)
        line = f"  ✓ {key} ({len(config.fields)} fields)"
        if refs:
            line += f" [{refs}]"
        click.echo(line)

    click.echo(click.style("\nAll lists are valid.", fg="green", bold=True))
