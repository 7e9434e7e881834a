import pytest
from pydantic import ValidationError

from pairing.codes import KEYSPACE_SIZE
from relay.server.settings import RelayServerSettings


class TestRelayServerSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("RELAY_CODE_POOL_SIZE", raising=False)
        monkeypatch.delenv("RELAY_LOG_LEVEL", raising=False)
        monkeypatch.delenv("RELAY_LOG_FORMAT", raising=False)
        monkeypatch.delenv("RELAY_CORS_ORIGINS", raising=False)
        settings = RelayServerSettings()
        assert settings.code_pool_size == 1000
        assert settings.code_max_attempts == 10_000
        assert settings.room_ttl_seconds == 600
        assert settings.log_level == "INFO"
        assert settings.log_format == "console"
        assert settings.cors_origins == ["http://localhost:8720"]
        assert settings.ws_allowed_origin is None

    def test_pool_size_from_env(self, monkeypatch):
        monkeypatch.setenv("RELAY_CODE_POOL_SIZE", "25")
        assert RelayServerSettings().code_pool_size == 25

    def test_pool_size_zero_allowed(self):
        assert RelayServerSettings(code_pool_size=0).code_pool_size == 0

    def test_pool_size_negative_rejected(self):
        with pytest.raises(ValidationError, match="code_pool_size"):
            RelayServerSettings(code_pool_size=-1)

    def test_pool_size_beyond_keyspace_rejected(self):
        with pytest.raises(ValidationError, match="code_pool_size"):
            RelayServerSettings(code_pool_size=70_000)

    def test_max_attempts_zero_rejected(self):
        with pytest.raises(ValidationError, match="code_max_attempts"):
            RelayServerSettings(code_max_attempts=0)

    def test_room_ttl_too_short_rejected(self):
        with pytest.raises(ValidationError, match="room_ttl_seconds"):
            RelayServerSettings(room_ttl_seconds=1)

    def test_pool_size_may_cover_whole_keyspace(self):
        assert RelayServerSettings(code_pool_size=KEYSPACE_SIZE).code_pool_size == KEYSPACE_SIZE

    def test_log_settings_are_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("RELAY_LOG_LEVEL", "debug")
        monkeypatch.setenv("RELAY_LOG_FORMAT", "JSON")
        settings = RelayServerSettings()
        assert settings.log_level == "DEBUG"
        assert settings.log_format == "json"

    @pytest.mark.parametrize(("field", "value"), [("log_level", "chatty"), ("log_format", "xml")])
    def test_unknown_log_settings_rejected(self, field, value):
        with pytest.raises(ValidationError, match=field):
            RelayServerSettings(**{field: value})

    def test_cors_origins_json_array(self, monkeypatch):
        monkeypatch.setenv("RELAY_CORS_ORIGINS", '["http://a.com","http://b.com"]')
        assert RelayServerSettings().cors_origins == ["http://a.com", "http://b.com"]

    def test_cors_origins_csv(self, monkeypatch):
        monkeypatch.setenv("RELAY_CORS_ORIGINS", "http://a.com,http://b.com")
        assert RelayServerSettings().cors_origins == ["http://a.com", "http://b.com"]

    def test_cors_origins_empty_rejected(self, monkeypatch):
        monkeypatch.setenv("RELAY_CORS_ORIGINS", "")
        with pytest.raises(ValidationError, match="cors_origins"):
            RelayServerSettings()

    def test_ws_allowed_origin_from_env(self, monkeypatch):
        monkeypatch.setenv("RELAY_WS_ALLOWED_ORIGIN", "http://play.example")
        assert RelayServerSettings().ws_allowed_origin == "http://play.example"

    def test_cors_origins_csv_skips_blank_segments(self, monkeypatch):
        monkeypatch.setenv("RELAY_CORS_ORIGINS", " http://a.com ,, http://b.com,")
        assert RelayServerSettings().cors_origins == ["http://a.com", "http://b.com"]

    def test_cors_origins_list_passthrough(self):
        assert RelayServerSettings(cors_origins=["http://a.com"]).cors_origins == ["http://a.com"]

    @pytest.mark.parametrize("value", ["[not json", '["http://a.com", 3]', "[]", " , "])
    def test_cors_origins_malformed_rejected(self, monkeypatch, value):
        monkeypatch.setenv("RELAY_CORS_ORIGINS", value)
        with pytest.raises(ValidationError, match="cors_origins"):
            RelayServerSettings()
