"""Journal editing and synchronization.

Provides the document model, tag extraction, the in-memory document
store, the debounced/retrying sync scheduler, entry-switch reconciliation
and persistence gateways, wired together by ``JournalEngine``.
"""

from .clock import AsyncioClock, Clock, TimerHandle
from .config import SyncConfig
from .cursor import CursorState, DocumentCursor
from .engine import JournalEngine
from .gateway import HttpJournalGateway, LegacyEntryCache, PersistenceGateway, StorageGateway
from .goals import DailyGoalTracker
from .models import JournalDocument, derive_title, new_document, reading_time, stamp, word_count
from .optimistic import optimistic_mutation
from .reconciler import Reconciler, SwitchChoice, SwitchOutcome, SwitchPolicy
from .settings import JournalSettings
from .store import DocumentStore
from .sync import TRANSITIONS, SyncEvent, SyncScheduler, SyncStateMachine, SyncStatus
from .tags import extract_tags, merge_tags, normalize_tag, parse_tag_input

__all__ = [
    "TRANSITIONS",
    "AsyncioClock",
    "Clock",
    "CursorState",
    "DailyGoalTracker",
    "DocumentCursor",
    "DocumentStore",
    "HttpJournalGateway",
    "JournalDocument",
    "JournalEngine",
    "JournalSettings",
    "LegacyEntryCache",
    "PersistenceGateway",
    "Reconciler",
    "StorageGateway",
    "SwitchChoice",
    "SwitchOutcome",
    "SwitchPolicy",
    "SyncConfig",
    "SyncEvent",
    "SyncScheduler",
    "SyncStateMachine",
    "SyncStatus",
    "TimerHandle",
    "derive_title",
    "extract_tags",
    "merge_tags",
    "new_document",
    "normalize_tag",
    "optimistic_mutation",
    "parse_tag_input",
    "reading_time",
    "stamp",
    "word_count",
]
