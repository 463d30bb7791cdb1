"""Shared infrastructure: config, exceptions, events, storage, logging."""
