# Overview: Opens and closes a live-state session bound to one identity (request, CLI or sweep).

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from flask import current_app, g

from ..records import Identity
from .app_state import InventoryState
from .lifecycle_service import LifecycleEngine


def _store():
    return current_app.extensions["document_store"]


@contextmanager
def open_session(identity: Identity, store=None) -> Iterator[LifecycleEngine]:
    """
    Subscribe a fresh InventoryState for the duration of the block.

    Must run inside an application context.
    """
    store = store or _store()
    state = InventoryState(store)
    state.start()
    try:
        yield LifecycleEngine(store, state, identity)
    finally:
        state.stop()


def request_engine() -> LifecycleEngine:
    """Engine for the current request, opened on first use and closed on teardown."""
    engine = g.get("engine")
    if engine is None:
        state = InventoryState(_store()).start()
        engine = LifecycleEngine(_store(), state, g.identity)
        g.engine = engine
    return engine


def close_request_session(exc=None) -> None:
    engine = g.pop("engine", None)
    if engine is not None:
        engine.state.stop()
