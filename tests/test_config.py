import json

from llmproxy.config import DEFAULT_PORT, Settings, load_server_list


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("LLMPROXY_PORT", "9000")
    monkeypatch.setenv("LLMPROXY_MAX_BODY_BYTES", "1024")
    monkeypatch.setenv("LLMPROXY_READ_TIMEOUT", "30")
    monkeypatch.setenv("LLMPROXY_LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.port == 9000
    assert settings.max_body_bytes == 1024
    assert settings.upstream_timeout == (5.0, 30.0)
    assert settings.log_level == "DEBUG"


def test_settings_ignore_bad_values(monkeypatch):
    monkeypatch.setenv("LLMPROXY_PORT", "nope")
    monkeypatch.setenv("LLMPROXY_MAX_BODY_BYTES", "-1")
    settings = Settings.from_env()
    assert settings.port == DEFAULT_PORT
    assert settings.max_body_bytes is None
    assert settings.upstream_timeout == (5.0, None)


def test_load_server_list(tmp_path):
    path = tmp_path / "servers.json"
    path.write_text(json.dumps([{"model_name": "m", "addr": "h:1"}, {"addr": "h:2"}, "junk"]))
    assert load_server_list(str(path)) == [("m", "h:1")]
    assert load_server_list(str(tmp_path / "missing.json")) == []
