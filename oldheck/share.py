"""Claimed share links, remembered on this machine.

One JSON file per game. A file that cannot be read back as a session is
deleted and treated as if it never existed.
"""

import json
import logging
import os
import secrets
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Optional

from oldheck.services.heck.session import GameNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class ShareSession:
    game_id: str
    token: str
    claimed_at: float
    session_id: str


class ShareSessionCache:
    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, game_id: str) -> str:
        return os.path.join(self.directory, f"share_session_{game_id}.json")

    def get(self, game_id: str) -> Optional[ShareSession]:
        path = self._path(game_id)
        try:
            with open(path, encoding='utf-8') as fh:
                raw = json.load(fh)
            return ShareSession(
                game_id=str(raw['game_id']),
                token=str(raw['token']),
                claimed_at=float(raw['claimed_at']),
                session_id=str(raw['session_id']),
            )
        except FileNotFoundError:
            return None
        except (ValueError, KeyError, TypeError):
            logger.warning(f"[share-session-corrupt] game={game_id} discarding {path}")
            try:
                os.remove(path)
            except OSError:
                pass
            return None

    def create(self, game_id: str, token: str) -> ShareSession:
        session = ShareSession(
            game_id=game_id,
            token=token,
            claimed_at=time.time(),
            session_id=str(uuid.uuid4()),
        )
        os.makedirs(self.directory, exist_ok=True)
        with open(self._path(game_id), 'w', encoding='utf-8') as fh:
            json.dump(asdict(session), fh)
        return session

    def has_access(self, game) -> bool:
        """True when this machine claimed the game's current share token."""
        if game is None or game.id is None:
            return False
        session = self.get(game.id)
        if session is None:
            return False
        token = game.share_token or {}
        return token.get('token') == session.token and token.get('used_by') == session.session_id


class ShareTokenError(Exception):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.status = status


def issue_share_token(store, game_id: str) -> dict:
    """Return the game's unused share token, minting one if needed."""
    game = store.read(game_id)
    if game is None:
        raise GameNotFoundError(game_id)
    current = game.share_token
    if current and not current.get('used_at'):
        return current
    token = {
        'token': secrets.token_hex(16),
        'created_at': time.time(),
        'used_at': None,
        'used_by': None,
    }
    store.patch(game_id, {'share_token': token})
    logger.info(f"[share-issued] game={game_id}")
    return token


def claim_share_token(store, game_id: str, token: str, session_id: str) -> dict:
    """Bind a share token to one session. Re-claiming from the same session is allowed."""
    game = store.read(game_id)
    if game is None:
        raise GameNotFoundError(game_id)
    current = game.share_token or {}
    if not token or current.get('token') != token:
        raise ShareTokenError('Invalid share token', 403)
    if current.get('used_by') and current.get('used_by') != session_id:
        raise ShareTokenError('Share link already used', 409)
    claimed = dict(current, used_at=current.get('used_at') or time.time(), used_by=session_id)
    store.patch(game_id, {'share_token': claimed})
    logger.info(f"[share-claimed] game={game_id} session={session_id}")
    return claimed
