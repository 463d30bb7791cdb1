"""Sancho CLI: entry point for the journal commands."""

import click

from sancho import __version__


@click.group()
@click.version_option(version=__version__, package_name="sancho")
@click.option(
    "--config",
    "config_path",
    envvar="SANCHO_CONFIG",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default: ~/.sancho/config.yaml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log sync activity to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Sancho: a journal that keeps itself saved."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


# Register subcommands
from .init_cmd import init
from .journal_cmd import delete, edit, goal, list_entries, new, show, star, tags

main.add_command(init)
main.add_command(list_entries)
main.add_command(show)
main.add_command(new)
main.add_command(edit)
main.add_command(delete)
main.add_command(star)
main.add_command(tags)
main.add_command(goal)
