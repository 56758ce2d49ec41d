# database/changes.py
"""Per-table change notifications.

Inserts, updates and deletes are collected from the ORM session while it
flushes (and from bulk UPDATE/DELETE statements), then published once the
transaction commits. A rollback discards them.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import event
from sqlalchemy.orm import Session

log = logging.getLogger(__name__)

INSERT, UPDATE, DELETE = "INSERT", "UPDATE", "DELETE"
_PENDING = "fringe_changes"


@dataclass(frozen=True)
class Change:
    table: str
    event: str              # INSERT | UPDATE | DELETE
    record_id: str | None   # None for bulk statements


class Subscription:
    def __init__(self, hub: "ChangeHub", table: str, callback: Callable[[Change], None]):
        self._hub = hub
        self.table = table
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._hub._remove(self)


class ChangeHub:
    def __init__(self):
        self._subs: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(self, table: str, callback: Callable[[Change], None]) -> Subscription:
        sub = Subscription(self, table, callback)
        self._subs[table].append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        subs = self._subs.get(sub.table, [])
        if sub in subs:
            subs.remove(sub)

    def publish(self, change: Change) -> None:
        for sub in list(self._subs.get(change.table, ())):
            if not sub.active:
                continue
            try:
                sub.callback(change)
            except Exception:
                # one failing listener never stops the others
                log.exception("Change listener failed for %s", change)


hub = ChangeHub()


def _record(session: Session, change: Change) -> None:
    session.info.setdefault(_PENDING, []).append(change)


def _identity(obj) -> str | None:
    pk = getattr(obj, "id", None)
    return str(pk) if pk is not None else None


@event.listens_for(Session, "after_flush")
def _collect_flush(session: Session, flush_context) -> None:
    for obj in session.new:
        _record(session, Change(obj.__tablename__, INSERT, _identity(obj)))
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            _record(session, Change(obj.__tablename__, UPDATE, _identity(obj)))
    for obj in session.deleted:
        _record(session, Change(obj.__tablename__, DELETE, _identity(obj)))


@event.listens_for(Session, "do_orm_execute")
def _collect_bulk(orm_execute_state) -> None:
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    mapper = orm_execute_state.bind_mapper
    if mapper is None:
        return
    kind = UPDATE if orm_execute_state.is_update else DELETE
    _record(orm_execute_state.session, Change(mapper.local_table.name, kind, None))


@event.listens_for(Session, "after_commit")
def _publish(session: Session) -> None:
    for change in session.info.pop(_PENDING, []):
        hub.publish(change)


@event.listens_for(Session, "after_soft_rollback")
def _discard(session: Session, previous_transaction) -> None:
    session.info.pop(_PENDING, None)
