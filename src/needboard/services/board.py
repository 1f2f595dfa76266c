"""Wiring of the realtime core into one process-wide object graph."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from needboard.realtime.hub import ConnectionHub
from needboard.repositories.store import SqlAlchemyStore, Store
from needboard.services.interactions import InteractionService
from needboard.services.migration import MigrationCoordinator
from needboard.services.pipeline import MessagePipeline
from needboard.services.review import ReviewService


@dataclass
class Board:
    """Everything a connection or request handler needs to talk to."""

    store: Store
    hub: ConnectionHub
    interactions: InteractionService
    migration: MigrationCoordinator
    pipeline: MessagePipeline
    review: ReviewService


def build_board(store: Store, *, upload_dir: str | Path | None = None) -> Board:
    """Assemble a board around ``store``; migration listens to interaction events."""
    hub = ConnectionHub()
    interactions = InteractionService(store)
    migration = MigrationCoordinator(store, hub)
    interactions.subscribe(migration.on_region_mismatch)
    pipeline = MessagePipeline(store, hub.router, interactions, upload_dir=upload_dir)
    review = ReviewService(store, pipeline, hub)
    return Board(
        store=store,
        hub=hub,
        interactions=interactions,
        migration=migration,
        pipeline=pipeline,
        review=review,
    )


class _BoardSingleton:
    """Singleton wrapper for the process-wide Board."""

    _instance: Board | None = None

    @classmethod
    def get_instance(cls) -> Board:
        if cls._instance is None:
            from needboard.db.session import SessionLocal

            cls._instance = build_board(SqlAlchemyStore(SessionLocal))
        return cls._instance


def get_board() -> Board:
    """Return the singleton board backed by the configured database."""
    return _BoardSingleton.get_instance()
