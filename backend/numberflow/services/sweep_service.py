# Overview: Scheduled consistency sweeps: RTS promotion, safe-custody flagging, reminder pruning.

"""
Consistency Sweeps

================================================================================
PURPOSE: Apply date-driven state changes nobody clicks for.
================================================================================

SWEEPS:
- promote_due_rts:   Non-RTS numbers whose rts_date is today or past become RTS
                     (rts_date cleared). Promoted ids are highlighted for a while.
- flag_safe_custody: COCP numbers whose safe_custody_date has arrived get the
                     one-shot safe_custody_notification_sent flag.
- prune_reminders:   Done reminders completed more than N days ago are deleted.
                     Admin only.

Each sweep is idempotent per record: the state it changes is the state its
filter selects on, so overlapping runs cannot double-apply.

SCHEDULING:
SweepScheduler runs every sweep once at start and then on its own interval in
daemon timer threads, each run inside an application context as the system
identity.
================================================================================
"""

from __future__ import annotations

import threading
from contextlib import nullcontext
from datetime import datetime, timedelta

from flask import current_app, has_app_context

from ..records import (
    DONE,
    NUMBER_TYPE_COCP,
    NUMBERS,
    REMINDERS,
    STATUS_NON_RTS,
    STATUS_RTS,
    SYSTEM_IDENTITY,
    BulkResult,
)
from ..time_utils import as_datetime, is_today_or_past, utcnow
from . import activity_service
from .session_service import open_session


SWEEP_RTS = "rts"
SWEEP_SAFE_CUSTODY = "safe-custody"
SWEEP_REMINDERS = "reminders"
SWEEP_NAMES = (SWEEP_RTS, SWEEP_SAFE_CUSTODY, SWEEP_REMINDERS)


class RecentlyPromoted:
    """
    Ids auto-promoted to RTS within the last `window_seconds`.

    In memory only. Expired ids are dropped whenever the set is read.
    """

    def __init__(self, window_seconds: int = 300):
        self.window = timedelta(seconds=window_seconds)
        self._expires: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def add(self, ids, now: datetime | None = None) -> None:
        expires = (now or utcnow()) + self.window
        with self._lock:
            for doc_id in ids:
                self._expires[doc_id] = expires

    def active(self, now: datetime | None = None) -> set[str]:
        now = now or utcnow()
        with self._lock:
            for doc_id in [i for i, exp in self._expires.items() if exp <= now]:
                del self._expires[doc_id]
            return set(self._expires)

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self.active()

    def clear(self) -> None:
        with self._lock:
            self._expires.clear()


def promote_due_rts(engine, now: datetime | None = None, tracker: RecentlyPromoted | None = None) -> BulkResult:
    now = now or utcnow()
    due = [
        n for n in engine.state.snapshot(NUMBERS)
        if n.get("status") == STATUS_NON_RTS
        and n.get("rts_date") is not None
        and is_today_or_past(n["rts_date"], now)
    ]
    result = BulkResult()
    if not due:
        return result

    batch = engine.batch()
    for number in due:
        batch.update(NUMBERS, number["id"], {"status": STATUS_RTS, "rts_date": None})
        result.ids.append(number["id"])
        result.mobiles.append(number["mobile"])
    engine.commit(batch)
    result.processed = len(due)
    if tracker is not None:
        tracker.add(result.ids, now)
    engine.log("Auto-updated to RTS", activity_service.describe("Automatically marked RTS", result.mobiles))
    return result


def flag_safe_custody(engine, now: datetime | None = None) -> BulkResult:
    now = now or utcnow()
    arrived = [
        n for n in engine.state.snapshot(NUMBERS)
        if n.get("number_type") == NUMBER_TYPE_COCP
        and n.get("safe_custody_date") is not None
        and not n.get("safe_custody_notification_sent")
        and is_today_or_past(n["safe_custody_date"], now)
    ]
    result = BulkResult()
    if not arrived:
        return result

    batch = engine.batch()
    for number in arrived:
        batch.update(NUMBERS, number["id"], {"safe_custody_notification_sent": True})
        result.ids.append(number["id"])
        result.mobiles.append(number["mobile"])
    engine.commit(batch)
    result.processed = len(arrived)
    engine.log(
        "Safe Custody Date Arrived",
        activity_service.describe("Safe custody date arrived for", result.mobiles),
    )
    return result


def prune_reminders(engine, now: datetime | None = None, retention_days: int = 7) -> BulkResult:
    """Only runs for admins; for anyone else it is a no-op."""
    result = BulkResult()
    if not engine.identity.is_admin:
        return result
    cutoff = (now or utcnow()) - timedelta(days=retention_days)
    stale = [
        r for r in engine.state.snapshot(REMINDERS)
        if r.get("status") == DONE
        and r.get("completion_date") is not None
        and as_datetime(r["completion_date"]) < cutoff
    ]
    if not stale:
        return result

    batch = engine.batch()
    for reminder in stale:
        batch.delete(REMINDERS, reminder["id"])
        result.ids.append(reminder["id"])
    engine.commit(batch)
    result.processed = len(stale)
    engine.log(
        "Auto-deleted reminders",
        f"Deleted {len(stale)} completed reminders older than {retention_days} days.",
    )
    return result


def _app_context(app):
    if has_app_context() and current_app._get_current_object() is app:
        return nullcontext()
    return app.app_context()


def run_sweeps(app, only: str | None = None, now: datetime | None = None) -> dict[str, BulkResult]:
    """Run one or all sweeps as the system identity; returns results by sweep name."""
    names = (only,) if only else SWEEP_NAMES
    results: dict[str, BulkResult] = {}
    with _app_context(app):
        tracker = app.extensions.get("recently_promoted")
        with open_session(SYSTEM_IDENTITY) as engine:
            for name in names:
                if name == SWEEP_RTS:
                    results[name] = promote_due_rts(engine, now, tracker)
                elif name == SWEEP_SAFE_CUSTODY:
                    results[name] = flag_safe_custody(engine, now)
                elif name == SWEEP_REMINDERS:
                    results[name] = prune_reminders(engine, now, app.config["REMINDER_RETENTION_DAYS"])
                else:
                    raise ValueError(f"Unknown sweep '{name}'")
        changed = {k: v.processed for k, v in results.items() if v.processed}
        if changed:
            app.logger.info("Sweeps applied: %s", changed)
    return results


class SweepScheduler:
    """Fixed-interval background timers, one per sweep."""

    def __init__(self, app):
        self.app = app
        self.intervals = {
            SWEEP_RTS: app.config["RTS_SWEEP_INTERVAL_SECONDS"],
            SWEEP_SAFE_CUSTODY: app.config["SAFE_CUSTODY_SWEEP_INTERVAL_SECONDS"],
            SWEEP_REMINDERS: app.config["REMINDER_PRUNE_INTERVAL_SECONDS"],
        }
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    def start(self) -> None:
        self._stopped.clear()
        for name in SWEEP_NAMES:
            self._run(name)

    def stop(self) -> None:
        self._stopped.set()
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()

    def _run(self, name: str) -> None:
        if self._stopped.is_set():
            return
        try:
            run_sweeps(self.app, only=name)
        except Exception:
            self.app.logger.exception("Sweep '%s' failed", name)
        self._schedule(name)

    def _schedule(self, name: str) -> None:
        with self._lock:
            if self._stopped.is_set():
                return
            timer = threading.Timer(self.intervals[name], self._run, args=(name,))
            timer.daemon = True
            self._timers[name] = timer
            timer.start()
