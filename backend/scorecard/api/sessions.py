from flask import Blueprint, jsonify, request, current_app
from scorecard.services.leaderboard import leaderboard, session_payload
from scorecard.services.player import Player, PlayerStateError, changed_fields
from scorecard.services.scoring import (
    PendingSelection,
    ScoringError,
    apply_bust,
    apply_card_selection,
    apply_modifiers_only,
    apply_penalty,
    bank_round,
)
from scorecard.services.store import generate_player_id, get_store
from typing import Callable, List


sessions = Blueprint('sessions', __name__)

# Match the player.name and player.player_id column widths
MAX_NAME_LENGTH = 64
MAX_PLAYER_ID_LENGTH = 64


@sessions.errorhandler(ScoringError)
@sessions.errorhandler(PlayerStateError)
def handle_bad_score_input(exc):
    return jsonify({'error': str(exc)}), 400


def _normalize_id(session_id: str) -> str:
    return session_id.strip().lower()


def _int_list(data: dict, key: str) -> List[int]:
    values = data.get(key)
    if values is None:
        return []
    if not isinstance(values, list) or any(isinstance(v, bool) or not isinstance(v, int) for v in values):
        raise ScoringError(f'{key} must be a list of whole numbers')
    return values


def _flag(data: dict, key: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ScoringError(f'{key} must be true or false')
    return value


def _selection_from_request(player: Player, with_cards: bool = True) -> PendingSelection:
    data = request.get_json(silent=True) or {}
    return PendingSelection.from_request(
        cards=_int_list(data, 'cards') if with_cards else [],
        modifiers=_int_list(data, 'modifiers'),
        double=_flag(data, 'double'),
        used=player.used_cards_this_round,
    )


def _find_player(session_id: str, player_id: str):
    """Return (player, None) or (None, error response)."""
    session = get_store().get_session(_normalize_id(session_id))
    if session is None:
        return None, (jsonify({'error': 'Session not found'}), 404)
    player = session.players.get(player_id)
    if player is None:
        return None, (jsonify({'error': 'Player not found in this session'}), 404)
    return player, None


def _save(session_id: str, before: Player, after: Player):
    """Push only the fields that changed and answer with the new player state."""
    fields = changed_fields(before, after)
    if fields and not get_store().apply_player_update(_normalize_id(session_id), before.id, fields):
        return jsonify({'error': 'Player not found in this session'}), 404
    return jsonify(after.to_dict())


def _apply(session_id: str, player_id: str, step: Callable[[Player], Player]):
    player, error = _find_player(session_id, player_id)
    if error:
        return error
    return _save(session_id, player, step(player))


@sessions.route('/create', methods=['POST'])
def create_session():
    session_id = get_store().create_session()
    return jsonify({
        'message': 'New session created!',
        'session_id': session_id,
    }), 201


@sessions.route('/<string:session_id>', methods=['GET'])
def get_session_state(session_id):
    session = get_store().get_session(_normalize_id(session_id))
    if session is None:
        return jsonify({'error': 'Session not found'}), 404
    return jsonify(session_payload(session))


@sessions.route('/<string:session_id>/leaderboard', methods=['GET'])
def get_leaderboard(session_id):
    session = get_store().get_session(_normalize_id(session_id))
    if session is None:
        return jsonify({'error': 'Session not found'}), 404
    return jsonify(leaderboard(session.player_list()))


@sessions.route('/<string:session_id>/join', methods=['POST'])
def join_session(session_id):
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip() if isinstance(data.get('name'), str) else ''
    if not name:
        return jsonify({'error': 'Player name is required'}), 400
    if len(name) > MAX_NAME_LENGTH:
        return jsonify({'error': f'Player name must be at most {MAX_NAME_LENGTH} characters'}), 400

    session_id = _normalize_id(session_id)
    store = get_store()
    session = store.get_session(session_id)
    if session is None:
        return jsonify({'error': 'Session not found'}), 404

    player_id = data.get('player_id')
    if isinstance(player_id, str) and len(player_id) > MAX_PLAYER_ID_LENGTH:
        return jsonify({'error': f'Player id must be at most {MAX_PLAYER_ID_LENGTH} characters'}), 400
    if isinstance(player_id, str) and player_id in session.players:
        # Returning player (e.g. reloaded page): keep their scores
        return jsonify(session.players[player_id].to_dict())
    if not isinstance(player_id, str) or not player_id.strip():
        player_id = generate_player_id()

    store.join_session(session_id, player_id, name)
    joined = store.get_session(session_id)
    return jsonify(joined.players[player_id].to_dict()), 201


@sessions.route('/<string:session_id>/players/<string:player_id>/preview', methods=['POST'])
def preview_selection(session_id, player_id):
    player, error = _find_player(session_id, player_id)
    if error:
        return error
    selection = _selection_from_request(player)
    if not selection.has_cards and (not selection.has_adjustment or player.current_round_score == 0):
        # Modifiers alone have nothing to adjust on an empty round
        next_score = player.current_round_score
    else:
        next_score = selection.preview(player)
    return jsonify({
        'cards': sorted(selection.cards),
        'cards_total': selection.cards_total,
        'modifier_total': selection.modifier_total,
        'double': selection.double,
        'delta': next_score - player.current_round_score,
        'next_round_score': next_score,
    })


@sessions.route('/<string:session_id>/players/<string:player_id>/cards', methods=['POST'])
def save_cards(session_id, player_id):
    player, error = _find_player(session_id, player_id)
    if error:
        return error
    selection = _selection_from_request(player)
    if not selection.has_cards:
        return jsonify({'error': 'Select at least one card not yet used this round'}), 400
    after = apply_card_selection(player, selection.cards, selection.modifier_total, selection.double)
    return _save(session_id, player, after)


@sessions.route('/<string:session_id>/players/<string:player_id>/modifiers', methods=['POST'])
def apply_modifiers(session_id, player_id):
    player, error = _find_player(session_id, player_id)
    if error:
        return error
    selection = _selection_from_request(player, with_cards=False)
    if not selection.has_adjustment:
        return jsonify({'error': 'Select a modifier or x2 first'}), 400
    if player.current_round_score == 0:
        return jsonify({'error': 'No points this round to adjust'}), 400
    after = apply_modifiers_only(player, selection.modifier_total, selection.double)
    return _save(session_id, player, after)


@sessions.route('/<string:session_id>/players/<string:player_id>/penalty', methods=['POST'])
def penalty(session_id, player_id):
    return _apply(session_id, player_id, apply_penalty)


@sessions.route('/<string:session_id>/players/<string:player_id>/bust', methods=['POST'])
def bust(session_id, player_id):
    return _apply(session_id, player_id, apply_bust)


@sessions.route('/<string:session_id>/players/<string:player_id>/bank', methods=['POST'])
def bank(session_id, player_id):
    player, error = _find_player(session_id, player_id)
    if error:
        return error
    if player.current_round_score == 0:
        return jsonify({'error': 'Nothing to bank this round'}), 400
    after = bank_round(player)
    current_app.logger.info(
        f"[bank] session={session_id} player={player_id} round={player.current_round_number} points={player.current_round_score}"
    )
    return _save(session_id, player, after)
