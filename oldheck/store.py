"""Shared game documents.

The store is the only thing clients share. It offers create/read/patch and
a subscription that pushes every successful patch to in-process listeners
and to Socket.IO room ``game:<id>``. There is no locking between writers;
the last patch wins.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from oldheck import db, socketio
from oldheck.models import GameDocument
from oldheck.services.heck.session import GameNotFoundError
from oldheck.services.heck.state import DELETE, Game

__all__ = ['DELETE', 'DocumentStore', 'GameNotFoundError']


def room_for(game_id: str) -> str:
    return f"game:{game_id}"


class DocumentStore:
    def __init__(self, app=None):
        self.app = None
        self._subscribers: Dict[str, List[tuple]] = {}
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        app.extensions['game_store'] = self

    @property
    def logger(self) -> logging.Logger:
        return self.app.logger if self.app is not None else logging.getLogger(__name__)

    # ---- documents ----

    def create(self, game: Game) -> str:
        with self.app.app_context():
            row = GameDocument()
            row.store(game.to_dict())
            db.session.add(row)
            db.session.commit()
            game_id = row.id
        self.logger.info(f"[create] game={game_id} players={len(game.setup.players)} max_rounds={game.setup.max_rounds}")
        return game_id

    def read_document(self, game_id: str) -> Optional[Dict[str, Any]]:
        with self.app.app_context():
            row = db.session.get(GameDocument, game_id)
            if row is None:
                return None
            doc = row.load()
            doc['version'] = row.version
            return doc

    def read(self, game_id: str) -> Optional[Game]:
        doc = self.read_document(game_id)
        return Game.from_dict(doc) if doc is not None else None

    def patch(self, game_id: str, fields: Dict[str, Any]) -> None:
        """Merge `fields` into the document. DELETE (or None) removes a key."""
        with self.app.app_context():
            row = db.session.get(GameDocument, game_id)
            if row is None:
                raise GameNotFoundError(game_id)
            doc = row.load()
            for key, value in fields.items():
                if value is DELETE or value is None:
                    doc.pop(key, None)
                else:
                    doc[key] = value
            row.store(doc)
            row.version = (row.version or 0) + 1
            row.updated_at = time.time()
            db.session.add(row)
            db.session.commit()
            doc = row.load()
            version = row.version
        self.logger.debug(f"[patch] game={game_id} version={version} fields={sorted(fields)}")
        self._publish(game_id, doc, version)

    def list_games(self) -> List[Dict[str, Any]]:
        with self.app.app_context():
            rows = GameDocument.query.order_by(GameDocument.created_at.desc()).all()
            return [row.to_dict() for row in rows]

    # ---- subscriptions ----

    def subscribe(self, game_id: str,
                  on_snapshot: Callable[[Game, int], None],
                  on_error: Callable[[Exception], None]) -> Callable[[], None]:
        entry = (on_snapshot, on_error)
        with self._lock:
            self._subscribers.setdefault(game_id, []).append(entry)

        def unsubscribe():
            with self._lock:
                subs = self._subscribers.get(game_id, [])
                if entry in subs:
                    subs.remove(entry)
                if not subs:
                    self._subscribers.pop(game_id, None)

        try:
            doc = self.read_document(game_id)
        except Exception as exc:
            on_error(exc)
            return unsubscribe
        if doc is None:
            on_error(GameNotFoundError(game_id))
        else:
            on_snapshot(Game.from_dict(doc), doc['version'])
        return unsubscribe

    def subscriber_count(self, game_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(game_id, []))

    def _publish(self, game_id: str, doc: Dict[str, Any], version: int) -> None:
        with self._lock:
            subs = list(self._subscribers.get(game_id, []))
        for on_snapshot, _ in subs:
            try:
                on_snapshot(Game.from_dict(doc), version)
            except Exception:
                self.logger.exception(f"[subscriber-failed] game={game_id}")
        payload = dict(doc, version=version)
        socketio.emit('snapshot', payload, to=room_for(game_id), namespace='/ws')
