import json
import logging

from oldheck.share import ShareSessionCache, claim_share_token, issue_share_token
from oldheck.services.heck.state import Game, GameSetup


def test_missing_session_is_none(tmp_path):
    assert ShareSessionCache(str(tmp_path)).get('g1') is None


def test_create_then_get(tmp_path):
    cache = ShareSessionCache(str(tmp_path / 'nested'))
    created = cache.create('g1', 'abc')
    loaded = cache.get('g1')
    assert loaded == created
    assert len(loaded.session_id) == 36


def test_corrupt_session_is_discarded(tmp_path, caplog):
    cache = ShareSessionCache(str(tmp_path))
    path = tmp_path / 'share_session_g1.json'
    path.write_text('{not json')
    with caplog.at_level(logging.WARNING):
        assert cache.get('g1') is None
    assert not path.exists()
    assert '[share-session-corrupt]' in caplog.text

    path.write_text(json.dumps({'game_id': 'g1', 'token': 'abc'}))
    assert cache.get('g1') is None
    assert not path.exists()


def test_has_access_after_claim(tmp_path, memory_store, two_player_game):
    cache = ShareSessionCache(str(tmp_path))
    token = issue_share_token(memory_store, two_player_game)['token']
    game = memory_store.read(two_player_game)
    game.id = two_player_game
    assert cache.has_access(game) is False

    session = cache.create(two_player_game, token)
    claim_share_token(memory_store, two_player_game, token, session.session_id)
    game = memory_store.read(two_player_game)
    game.id = two_player_game
    assert cache.has_access(game) is True

    other = ShareSessionCache(str(tmp_path / 'other'))
    other.create(two_player_game, token)
    assert other.has_access(game) is False


def test_has_access_needs_current_token(tmp_path):
    cache = ShareSessionCache(str(tmp_path))
    session = cache.create('g9', 'old')
    game = Game.start(GameSetup.build(['A', 'B']))
    game.id = 'g9'
    game.share_token = {'token': 'new', 'used_by': session.session_id}
    assert cache.has_access(game) is False
