"""sancho init: write the config file."""

from __future__ import annotations

from pathlib import Path

import click
import yaml

from .common import CONFIG_PATH


def _load_existing_config(path: Path) -> dict:
    """Load existing config if present."""
    if path.exists():
        with open(path) as f:
            return yaml.safe_load(f) or {}
    return {}


@click.command()
@click.option("--api-url", default=None, help="Journal server URL; leave empty to keep entries on this machine.")
@click.option(
    "--switch-policy",
    type=click.Choice(["silent", "prompt"]),
    default=None,
    help="What to do with unsaved edits when opening another entry.",
)
@click.option("--data-dir", default=None, help="Where local entries and settings live.")
@click.pass_context
def init(ctx: click.Context, api_url: str | None, switch_policy: str | None, data_dir: str | None) -> None:
    """Set up sancho. Existing values are kept unless overridden."""
    config_path = Path(ctx.find_root().obj.get("config_path") or CONFIG_PATH).expanduser()
    existing = _load_existing_config(config_path)
    journal = dict(existing.get("journal") or {})
    paths = dict(existing.get("paths") or {})

    if api_url is not None:
        journal["api_url"] = api_url.strip()
    if switch_policy is not None:
        journal["switch_policy"] = switch_policy
    if data_dir is not None:
        base = str(Path(data_dir).expanduser())
        paths.update(data_dir=base, storage_dir=str(Path(base) / "storage"), log_dir=str(Path(base) / "logs"))

    config_data = {**existing, "journal": journal}
    if paths:
        config_data["paths"] = paths

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.dump(config_data, f, default_flow_style=False, sort_keys=False)

    click.echo(f"  Config:  {config_path}")
    if journal.get("api_url"):
        click.echo(f"  Server:  {journal['api_url']}")
    else:
        click.echo("  Entries are stored locally.")
