"""Tests for persisted catalog token state."""

import json
from aoty.session_manager import TokenSessionManager


class TestTokenSessionManager:
    """Test suite for TokenSessionManager."""

    def test_starts_empty(self, tmp_path):
        manager = TokenSessionManager(str(tmp_path / "tokens.json"))

        assert manager.access_token is None
        assert not manager.has_token

    def test_set_tokens_persists(self, tmp_path):
        path = tmp_path / "tokens.json"
        manager = TokenSessionManager(str(path))

        manager.set_tokens("access-1", "refresh-1")

        data = json.loads(path.read_text())
        assert data['access_token'] == "access-1"
        assert data['refresh_token'] == "refresh-1"
        assert data['updated_at']
        assert TokenSessionManager(str(path)).access_token == "access-1"

    def test_new_access_token_keeps_refresh_token(self, tmp_path):
        manager = TokenSessionManager(str(tmp_path / "tokens.json"))
        manager.set_tokens("access-1", "refresh-1")

        manager.set_tokens("access-2")

        assert TokenSessionManager(str(tmp_path / "tokens.json")).state.refresh_token == "refresh-1"
        assert manager.access_token == "access-2"

    def test_corrupted_file_starts_empty(self, tmp_path):
        path = tmp_path / "tokens.json"
        path.write_text("{not json")

        assert not TokenSessionManager(str(path)).has_token

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "tokens.json"
        path.write_text(json.dumps({'access_token': 'a', 'scope': 'playlist-modify-public'}))

        assert TokenSessionManager(str(path)).access_token == 'a'

    def test_clear(self, tmp_path):
        path = tmp_path / "tokens.json"
        manager = TokenSessionManager(str(path))
        manager.set_tokens("access-1")

        manager.clear()

        assert not manager.has_token
        assert json.loads(path.read_text())['access_token'] is None
