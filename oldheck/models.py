from oldheck import db
import json
import time
import uuid


def generate_game_id():
    return uuid.uuid4().hex


class GameDocument(db.Model):
    """The shared game document. `data` holds the JSON-encoded game."""
    __tablename__ = 'game_document'
    id = db.Column(db.String(32), primary_key=True, default=generate_game_id)
    data = db.Column(db.Text, nullable=False, default='{}')
    status = db.Column(db.String(32), default='in_progress', index=True)  # in_progress, completed
    version = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.Float, default=time.time)
    updated_at = db.Column(db.Float, default=time.time, onupdate=time.time)

    def load(self):
        try:
            doc = json.loads(self.data) if self.data else {}
        except Exception:
            doc = {}
        doc['id'] = self.id
        doc['created_at'] = self.created_at
        doc['updated_at'] = self.updated_at
        return doc

    def store(self, doc):
        body = {k: v for k, v in doc.items() if k not in ('id', 'created_at', 'updated_at')}
        self.data = json.dumps(body)
        self.status = body.get('status') or 'in_progress'

    def to_dict(self):
        doc = self.load()
        setup = doc.get('setup') or {}
        return {
            'id': self.id,
            'players': setup.get('players', []),
            'decks': setup.get('decks'),
            'max_rounds': setup.get('max_rounds'),
            'status': self.status,
            'completed_rounds': len(doc.get('rounds') or []),
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }
