"""Session store: where players' score fields live between requests.

Routes and socket handlers only talk to the ``SessionStore`` interface:
read a session, subscribe to it, add a player, merge a partial update into
one player. Two backends ship here: an in-process dict for development and
tests, and a SQLAlchemy one backed by the app database.

Updates are last-write-wins per field. A write aimed at a session or player
that no longer exists is logged and dropped. Writes and their notifications
run under one store lock, so subscribers receive snapshots in write order.
"""

import logging
import random
import string
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from flask import current_app

from .player import Player


logger = logging.getLogger(__name__)

Subscriber = Callable[[Optional['GameSession']], None]

SESSION_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_session_id(length: int = 7) -> str:
    """Generate a short, link-friendly session code."""
    return ''.join(random.choices(SESSION_ID_ALPHABET, k=length))


def generate_player_id() -> str:
    suffix = ''.join(random.choices(SESSION_ID_ALPHABET, k=7))
    return f'player_{int(time.time() * 1000)}_{suffix}'


@dataclass(frozen=True)
class GameSession:
    id: str
    created_at: float
    players: Dict[str, Player] = field(default_factory=dict)

    def player_list(self) -> List[Player]:
        return list(self.players.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'created_at': self.created_at,
            'players': {pid: p.to_dict() for pid, p in self.players.items()},
        }


class SessionStore:
    """Base class holding the subscriber fan-out. Backends fill in storage."""

    def __init__(self, id_length: int = 7):
        self.id_length = id_length
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._subscribers_lock = threading.Lock()
        # Held across a write and its fan-out; reentrant for subscribers that write back
        self._write_lock = threading.RLock()

    # ---- storage hooks ----

    def _load(self, session_id: str) -> Optional[GameSession]:
        raise NotImplementedError

    def _insert_session(self, session_id: str, created_at: float) -> bool:
        """Store an empty session. Return False if the id is taken."""
        raise NotImplementedError

    def _insert_player(self, session_id: str, player: Player) -> bool:
        """Add a player, creating the session if needed. False if already present."""
        raise NotImplementedError

    def _update_player(self, session_id: str, player_id: str, fields: Dict[str, Any]) -> bool:
        """Merge fields into a player. False if session or player is missing."""
        raise NotImplementedError

    # ---- public interface ----

    def create_session(self) -> str:
        with self._write_lock:
            while True:
                session_id = generate_session_id(self.id_length)
                if self._insert_session(session_id, time.time()):
                    break
                logger.info(f"[create-retry] session id collision on {session_id}")
            logger.info(f"[create] session={session_id}")
            self._notify(session_id)
        return session_id

    def get_session(self, session_id: str) -> Optional[GameSession]:
        return self._load(session_id)

    def join_session(self, session_id: str, player_id: str, player_name: str) -> None:
        player = Player.new(player_id, player_name)
        with self._write_lock:
            if not self._insert_player(session_id, player):
                logger.info(f"[join-skip] session={session_id} player={player_id} already joined")
                return
            logger.info(f"[join] session={session_id} player={player_id} name={player.name!r}")
            self._notify(session_id)

    def apply_player_update(self, session_id: str, player_id: str, fields: Dict[str, Any]) -> bool:
        with self._write_lock:
            if not self._update_player(session_id, player_id, dict(fields)):
                logger.warning(f"[update-miss] session={session_id} player={player_id} not found")
                return False
            logger.info(f"[update] session={session_id} player={player_id} fields={sorted(fields)}")
            self._notify(session_id)
        return True

    def subscribe(self, session_id: str, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for a session; it fires now and after every change."""
        with self._write_lock:
            with self._subscribers_lock:
                self._subscribers[session_id].append(callback)
            callback(self.get_session(session_id))

        def unsubscribe() -> None:
            with self._subscribers_lock:
                callbacks = self._subscribers.get(session_id)
                if callbacks and callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(session_id, None)

        return unsubscribe

    def subscriber_count(self, session_id: str) -> int:
        with self._subscribers_lock:
            return len(self._subscribers.get(session_id, ()))

    def _notify(self, session_id: str) -> None:
        # Caller holds _write_lock, so the snapshot is the state this write produced
        with self._subscribers_lock:
            callbacks = list(self._subscribers.get(session_id, ()))
        if not callbacks:
            return
        snapshot = self.get_session(session_id)
        for cb in callbacks:
            try:
                cb(snapshot)
            except Exception:
                logger.exception(f"[notify-error] session={session_id} subscriber failed")


class MemorySessionStore(SessionStore):
    """Sessions kept in a process-local dict."""

    def __init__(self, id_length: int = 7):
        super().__init__(id_length)
        self._sessions: Dict[str, GameSession] = {}
        self._lock = threading.RLock()

    def _load(self, session_id):
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return GameSession(session.id, session.created_at, dict(session.players))

    def _insert_session(self, session_id, created_at):
        with self._lock:
            if session_id in self._sessions:
                return False
            self._sessions[session_id] = GameSession(session_id, created_at)
            return True

    def _insert_player(self, session_id, player):
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = GameSession(session_id, time.time())
            if player.id in session.players:
                return False
            players = dict(session.players)
            players[player.id] = player
            self._sessions[session_id] = GameSession(session.id, session.created_at, players)
            return True

    def _update_player(self, session_id, player_id, fields):
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or player_id not in session.players:
                return False
            players = dict(session.players)
            players[player_id] = players[player_id].merged(fields)
            self._sessions[session_id] = GameSession(session.id, session.created_at, players)
            return True


class SqlSessionStore(SessionStore):
    """Sessions kept in the app database through Flask-SQLAlchemy.

    Must be used inside an application context.
    """

    def _load(self, session_id):
        from scorecard.models import SessionRecord
        from scorecard import db

        record = db.session.get(SessionRecord, session_id)
        if record is None:
            return None
        players = {r.player_id: r.to_player() for r in record.players}
        return GameSession(record.id, record.created_at, players)

    def _insert_session(self, session_id, created_at):
        from scorecard.models import SessionRecord
        from scorecard import db

        if db.session.get(SessionRecord, session_id) is not None:
            return False
        db.session.add(SessionRecord(id=session_id, created_at=created_at))
        db.session.commit()
        return True

    def _insert_player(self, session_id, player):
        from scorecard.models import SessionRecord, PlayerRecord
        from scorecard import db

        record = db.session.get(SessionRecord, session_id)
        if record is None:
            record = SessionRecord(id=session_id, created_at=time.time())
            db.session.add(record)
        elif PlayerRecord.query.filter_by(session_id=session_id, player_id=player.id).first():
            return False
        row = PlayerRecord(session_id=session_id, player_id=player.id, name=player.name)
        row.load_player(player)
        db.session.add(row)
        db.session.commit()
        return True

    def _update_player(self, session_id, player_id, fields):
        from scorecard.models import PlayerRecord
        from scorecard import db

        row = PlayerRecord.query.filter_by(session_id=session_id, player_id=player_id).first()
        if row is None:
            return False
        # Validate the merged record before touching any column.
        merged = row.to_player().merged(fields)
        row.load_player(merged, only=fields.keys())
        db.session.add(row)
        db.session.commit()
        return True


STORE_BACKENDS = {
    'memory': MemorySessionStore,
    'sql': SqlSessionStore,
}


def create_store(kind: str, id_length: int = 7) -> SessionStore:
    try:
        backend = STORE_BACKENDS[kind]
    except KeyError:
        raise ValueError(f"unknown SESSION_STORE {kind!r}; expected one of {sorted(STORE_BACKENDS)}")
    return backend(id_length=id_length)


def get_store() -> SessionStore:
    return current_app.extensions['session_store']

