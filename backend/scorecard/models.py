from scorecard import db
from scorecard.services.player import Player, SCORE_FIELDS
import json
import time


class SessionRecord(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.String(16), primary_key=True)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    players = db.relationship(
        'PlayerRecord',
        back_populates='session',
        order_by='PlayerRecord.id',
        cascade='all, delete-orphan',
    )


class PlayerRecord(db.Model):
    __tablename__ = 'player'
    __table_args__ = (db.UniqueConstraint('session_id', 'player_id', name='uq_player_session_player'),)
    # Autoincrement id doubles as join order.
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(16), db.ForeignKey('game_session.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(64), nullable=False)
    total_score = db.Column(db.Integer, default=0, nullable=False)
    current_round_score = db.Column(db.Integer, default=0, nullable=False)
    current_round_number = db.Column(db.Integer, default=1, nullable=False)
    rounds = db.Column(db.Text, nullable=True)  # JSON-encoded list of banked round scores
    used_cards_this_round = db.Column(db.Text, nullable=True)  # JSON-encoded list of card values
    session = db.relationship('SessionRecord', back_populates='players')

    def to_player(self) -> Player:
        return Player(
            id=self.player_id,
            name=self.name,
            total_score=self.total_score or 0,
            current_round_score=self.current_round_score or 0,
            rounds=json.loads(self.rounds) if self.rounds else (),
            current_round_number=self.current_round_number or 1,
            used_cards_this_round=json.loads(self.used_cards_this_round) if self.used_cards_this_round else (),
        )

    def load_player(self, player: Player, only=None) -> None:
        """Copy score fields from a Player onto the row, optionally just the named ones."""
        values = player.to_dict()
        names = set(only) if only is not None else set(SCORE_FIELDS)
        for name in names:
            value = values[name]
            if name in ('rounds', 'used_cards_this_round'):
                value = json.dumps(value)
            setattr(self, name, value)
