from flask_socketio import join_room, leave_room, emit
from flask import request
from scorecard import socketio
from scorecard.services.leaderboard import session_payload
from scorecard.services.store import get_store
from typing import Callable, Dict, Optional, Set
import logging
import threading

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'

# One store subscription per session with at least one connected socket
_room_unsubscribe: Dict[str, Callable[[], None]] = {}
_room_members: Dict[str, Set[str]] = {}
_sid_to_sessions: Dict[str, Set[str]] = {}
_rooms_lock = threading.Lock()


def room_for(session_id: str) -> str:
    return f"session:{session_id}"


def _broadcast_snapshot(session_id: str, session) -> None:
    # Runs on the store's notify path, possibly outside a socket context
    if session is None:
        socketio.emit('session_missing', {'session_id': session_id}, to=room_for(session_id), namespace=NAMESPACE)
        return
    socketio.emit('session_update', session_payload(session), to=room_for(session_id), namespace=NAMESPACE)


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _session_id_from(data) -> Optional[str]:
    session_id = (data or {}).get('session_id')
    if not session_id or not isinstance(session_id, str):
        return None
    return session_id.strip().lower() or None


def _track(sid: str, session_id: str, subscribe: Callable[[], Callable[[], None]]) -> bool:
    """Record membership; the room's first socket opens its store subscription.

    Subscribing happens under the rooms lock so a concurrent leave cannot
    empty the room before its unsubscribe handle is stored.
    """
    with _rooms_lock:
        _room_members.setdefault(session_id, set()).add(sid)
        _sid_to_sessions.setdefault(sid, set()).add(session_id)
        if session_id in _room_unsubscribe:
            return False
        _room_unsubscribe[session_id] = subscribe()
        return True


def _untrack(sid: str, session_id: str) -> None:
    unsubscribe = None
    with _rooms_lock:
        members = _room_members.get(session_id)
        if members is not None:
            members.discard(sid)
            if not members:
                _room_members.pop(session_id, None)
                unsubscribe = _room_unsubscribe.pop(session_id, None)
        sessions = _sid_to_sessions.get(sid)
        if sessions is not None:
            sessions.discard(session_id)
            if not sessions:
                _sid_to_sessions.pop(sid, None)
    if unsubscribe is not None:
        unsubscribe()
        logger.info(f"[unsubscribe] session={session_id} room empty")


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*args):
    sid = _get_sid()
    with _rooms_lock:
        session_ids = list(_sid_to_sessions.get(sid, ()))
    for session_id in session_ids:
        _untrack(sid, session_id)


def handle_join_session(data):
    session_id = _session_id_from(data)
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    room = room_for(session_id)
    join_room(room)
    emit('joined', {'room': room})

    store = get_store()

    def subscribe_room():
        # Delivers the current snapshot right away, to the whole room
        return store.subscribe(session_id, lambda s: _broadcast_snapshot(session_id, s))

    if _track(_get_sid(), session_id, subscribe_room):
        logger.info(f"[subscribe] session={session_id}")
        return

    session = store.get_session(session_id)
    if session is None:
        emit('session_missing', {'session_id': session_id})
    else:
        emit('session_update', session_payload(session))


def handle_leave_session(data):
    session_id = _session_id_from(data)
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    room = room_for(session_id)
    leave_room(room)
    emit('left', {'room': room})
    _untrack(_get_sid(), session_id)


def handle_ping(data):
    emit('pong', data or {})


def reset_subscriptions() -> None:
    """Drop every room subscription. Used when an app is torn down."""
    with _rooms_lock:
        pending = list(_room_unsubscribe.values())
        _room_unsubscribe.clear()
        _room_members.clear()
        _sid_to_sessions.clear()
    for unsubscribe in pending:
        unsubscribe()


def register_socketio_handlers(app=None, testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'join_session': handle_join_session,
        'leave_session': handle_leave_session,
        'ping': handle_ping,
    }
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
    if app is not None:
        app.logger.info(f"[init] socket handlers on {', '.join(namespaces)}")
