"""sancho list/show/new/edit/delete/star/tags/goal: journal commands."""

from __future__ import annotations

import asyncio
from datetime import datetime

import click

from .common import create_engine, create_gateway, create_settings, load_config, resolve_id


def _format_date(ms: int) -> str:
    if not ms:
        return "----------"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d")


def _format_row(doc) -> str:
    star = "*" if doc.is_starred else " "
    tags = f"  [{', '.join(doc.tags)}]" if doc.tags else ""
    return f"{doc.id[:8]} {star} {_format_date(doc.created_at)}  {doc.title or '(untitled)'}{tags}"


def _run(coro):
    from sancho.core.exceptions import SanchoError

    try:
        return asyncio.run(coro)
    except SanchoError as e:
        raise click.ClickException(str(e)) from e


async def _load_all(config):
    return await create_gateway(config).get_all()


async def _open(config, entry_id: str | None):
    """Loaded engine with *entry_id* (or the newest entry) open."""
    engine = create_engine(config)
    await engine.load()
    if entry_id is not None:
        doc = resolve_id(engine.entries, entry_id)
        await engine.select_document(doc)
    return engine


def _apply_edits(engine, title: str | None, content: str | None, append: str | None, tag_input: str | None) -> None:
    from sancho.journal.tags import extract_tags, merge_tags, parse_tag_input

    if title is not None:
        engine.set_title(title)
    if content is not None:
        engine.set_content(content)
    if append:
        separator = "\n" if engine.content and not engine.content.endswith("\n") else ""
        engine.set_content(engine.content + separator + append)
    extra = parse_tag_input(tag_input) if tag_input else []
    engine.set_tags(merge_tags(engine.tags, [*extra, *extract_tags(engine.content)]))


# ── Commands ───────────────────────────────────────────────────────


@click.command("list")
@click.option("--starred", is_flag=True, help="Only starred entries.")
@click.option("--tag", default=None, help="Only entries with this tag.")
@click.pass_context
def list_entries(ctx: click.Context, starred: bool, tag: str | None) -> None:
    """List journal entries, newest first."""
    from sancho.journal.tags import filter_by_tag

    config = load_config(ctx)
    docs = _run(_load_all(config))
    if starred:
        docs = [doc for doc in docs if doc.is_starred]
    if tag:
        docs = filter_by_tag(docs, tag)
    if not docs:
        click.echo("No entries.")
        return
    for doc in docs:
        click.echo(_format_row(doc))


@click.command()
@click.argument("entry_id")
@click.pass_context
def show(ctx: click.Context, entry_id: str) -> None:
    """Print one entry."""
    from sancho.journal.models import reading_time, word_count

    config = load_config(ctx)
    doc = resolve_id(_run(_load_all(config)), entry_id)
    words = word_count(doc.content)
    click.echo(f"# {doc.title or '(untitled)'}")
    click.echo(f"id: {doc.id}")
    click.echo(f"created: {_format_date(doc.created_at)}  updated: {_format_date(doc.updated_at)}")
    if doc.tags:
        click.echo(f"tags: {', '.join(doc.tags)}")
    if doc.template_ref:
        click.echo(f"template: {doc.template_ref}")
    click.echo(f"words: {words} (~{reading_time(words)} min)")
    click.echo("")
    click.echo(doc.content)


@click.command()
@click.option("--title", default=None, help="Entry title (derived from the first line when omitted).")
@click.option("--content", default=None, help="Entry text; read from stdin when '-'.")
@click.option("--tags", "tag_input", default=None, help="Comma- or space-separated tags.")
@click.pass_context
def new(ctx: click.Context, title: str | None, content: str | None, tag_input: str | None) -> None:
    """Create an entry."""
    config = load_config(ctx)
    if content == "-":
        content = click.get_text_stream("stdin").read()

    async def _new():
        engine = create_engine(config)
        try:
            await engine.load()
            current = engine.store.get(engine.selected_id)
            # Reuse the blank entry a fresh journal starts with.
            if current is None or current.content or current.title:
                await engine.create_document()
            _apply_edits(engine, title, content, None, tag_input)
            await engine.save(manual=True)
            return engine.store.get(engine.selected_id)
        finally:
            await engine.aclose()

    doc = _run(_new())
    click.echo(f"Created {doc.id[:8]}: {doc.title}")


@click.command()
@click.argument("entry_id")
@click.option("--title", default=None, help="New title.")
@click.option("--content", default=None, help="Replace the text; read from stdin when '-'.")
@click.option("--append", default=None, help="Append a line to the text.")
@click.option("--tags", "tag_input", default=None, help="Tags to add.")
@click.pass_context
def edit(
    ctx: click.Context,
    entry_id: str,
    title: str | None,
    content: str | None,
    append: str | None,
    tag_input: str | None,
) -> None:
    """Change an entry."""
    config = load_config(ctx)
    if content == "-":
        content = click.get_text_stream("stdin").read()

    async def _edit():
        engine = await _open(config, entry_id)
        try:
            _apply_edits(engine, title, content, append, tag_input)
            await engine.save(manual=True)
            return engine.store.get(engine.selected_id)
        finally:
            await engine.aclose()

    doc = _run(_edit())
    click.echo(f"Saved {doc.id[:8]}: {doc.title}")


@click.command()
@click.argument("entry_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def delete(ctx: click.Context, entry_id: str, yes: bool) -> None:
    """Delete an entry."""
    config = load_config(ctx)
    doc = resolve_id(_run(_load_all(config)), entry_id)
    if not yes and not click.confirm(f"Delete '{doc.title or doc.id}'?", default=False):
        click.echo("Aborted.")
        return

    async def _delete():
        engine = create_engine(config)
        try:
            await engine.load()
            await engine.delete_document(doc.id)
        finally:
            await engine.aclose()

    _run(_delete())
    click.echo(f"Deleted {doc.id[:8]}")


@click.command()
@click.argument("entry_id")
@click.pass_context
def star(ctx: click.Context, entry_id: str) -> None:
    """Star or unstar an entry."""
    config = load_config(ctx)

    async def _star():
        engine = create_engine(config)
        try:
            await engine.load()
            doc = resolve_id(engine.entries, entry_id)
            ok = await engine.toggle_star(doc.id)
            return ok, engine.store.get(doc.id)
        finally:
            await engine.aclose()

    ok, doc = _run(_star())
    if not ok:
        raise click.ClickException("Could not update the star; nothing was changed.")
    click.echo(f"{'Starred' if doc.is_starred else 'Unstarred'} {doc.id[:8]}")


@click.command()
@click.pass_context
def tags(ctx: click.Context) -> None:
    """Show every tag with its entry count."""
    from sancho.journal.tags import tag_counts

    config = load_config(ctx)
    counts = tag_counts(_run(_load_all(config)))
    if not counts:
        click.echo("No tags.")
        return
    width = max(len(tag) for tag in counts)
    for tag, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
        click.echo(f"#{tag.ljust(width)}  {count}")


@click.command()
@click.argument("words", type=click.IntRange(min=0), required=False)
@click.option("--reset", is_flag=True, help="Reset today's progress.")
@click.pass_context
def goal(ctx: click.Context, words: int | None, reset: bool) -> None:
    """Show or set the daily word goal."""
    from sancho.journal.goals import DailyGoalTracker

    config = load_config(ctx)
    tracker = DailyGoalTracker(create_settings(config))
    if words is not None:
        tracker.goal = words
    if reset:
        tracker.reset()
    if tracker.goal <= 0:
        click.echo("No daily goal set.")
        return
    click.echo(f"{tracker.progress}/{tracker.goal} words today ({tracker.percent}%)")
