"""Shared setup logic for CLI commands."""

from __future__ import annotations

from pathlib import Path

import click

SANCHO_DIR = Path.home() / ".sancho"
CONFIG_PATH = SANCHO_DIR / "config.yaml"


def load_config(ctx: click.Context):
    """Load config from ``--config`` or ~/.sancho/config.yaml and set up logging."""
    from sancho.core.config import Config
    from sancho.core.exceptions import ConfigurationError
    from sancho.core.utils.logging import setup_logging, setup_logging_from_config

    obj = ctx.find_root().obj or {}
    config_path = obj.get("config_path") or str(CONFIG_PATH)
    try:
        config = Config(config_file=config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    if obj.get("verbose"):
        setup_logging(level="DEBUG")
    else:
        setup_logging_from_config(config)
    return config


def create_gateway(config):
    """HTTP gateway when ``journal.api_url`` is set, local file storage otherwise."""
    from sancho.core.storage import JsonFileKeyValueStore, LocalStorage
    from sancho.journal.gateway import HttpJournalGateway, LegacyEntryCache, StorageGateway

    data_dir = Path(config.get_data_dir())
    legacy = LegacyEntryCache(JsonFileKeyValueStore(data_dir / "local_entries.json"))

    api_url = config.get("journal.api_url", "")
    if api_url:
        return HttpJournalGateway(
            api_url,
            legacy=legacy,
            csrf_token=config.get("journal.csrf_token") or None,
            timeout=config.get_int("journal.request_timeout", 20),
        )
    return StorageGateway(LocalStorage(config.get("paths.storage_dir")), legacy=legacy)


def create_settings(config):
    from sancho.core.storage import JsonFileKeyValueStore
    from sancho.journal.settings import JournalSettings

    return JournalSettings(JsonFileKeyValueStore(Path(config.get_data_dir()) / "settings.json"))


def create_engine(config):
    """Engine for one-shot commands: silent switching, file-backed settings."""
    from sancho.journal import JournalEngine, SwitchPolicy, SyncConfig

    return JournalEngine(
        create_gateway(config),
        config=SyncConfig.from_config(config),
        settings=create_settings(config),
        switch_policy=SwitchPolicy.SILENT,
    )


def resolve_id(docs, prefix: str):
    """Find the one document whose id starts with *prefix*."""
    matches = [doc for doc in docs if doc.id.startswith(prefix)]
    if not matches:
        raise click.ClickException(f"No entry matches '{prefix}'.")
    exact = [doc for doc in matches if doc.id == prefix]
    if exact:
        return exact[0]
    if len(matches) > 1:
        raise click.ClickException(f"'{prefix}' matches {len(matches)} entries; use more characters.")
    return matches[0]
