import json
import os
import stat

import pytest

from chat_sync.config import (
    ChatSyncConfig,
    from_environ,
    load_config,
    load_settings,
    persist_settings,
    update_settings,
)


def test_defaults():
    config = ChatSyncConfig()
    assert config.conversations_interval_s == 30.0
    assert config.timeline_interval_s == 10.0
    assert config.unread_interval_s == 30.0
    assert config.request_timeout_s == 15.0
    assert config.base_url == ""


def test_precedence_file_then_environment_then_overrides(tmp_path):
    settings = tmp_path / "settings.json"
    settings.write_text(
        json.dumps({"base_url": "http://file/api/chat", "user_id": "u_file", "project_id": "7"}),
        encoding="utf-8",
    )
    environ = {"CHAT_SYNC_BASE_URL": "http://env/api/chat", "CHAT_SYNC_TIMELINE_INTERVAL": "5"}

    config = load_config(settings, environ=environ, overrides={"user_id": "u_cli", "base_url": None})

    assert config.base_url == "http://env/api/chat"
    assert config.user_id == "u_cli"
    assert config.project_id == "7"
    assert config.timeline_interval_s == 5.0


def test_unknown_keys_and_empty_values_are_ignored():
    config = ChatSyncConfig(base_url="http://a").merged({"color": "blue", "base_url": "", "session_token": None})
    assert config.base_url == "http://a"
    assert config.session_token is None


@pytest.mark.parametrize("value", ["abc", "0", "-1"])
def test_invalid_interval_is_rejected(tmp_path, value):
    with pytest.raises(ValueError):
        load_config(tmp_path / "missing.json", environ={"CHAT_SYNC_UNREAD_INTERVAL": value})


def test_missing_or_corrupt_settings_read_as_empty(tmp_path):
    assert load_settings(tmp_path / "missing.json") == {}

    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{not json", encoding="utf-8")
    assert load_settings(corrupt) == {}

    wrong_shape = tmp_path / "list.json"
    wrong_shape.write_text("[1, 2]", encoding="utf-8")
    assert load_settings(wrong_shape) == {}


def test_persist_settings_is_owner_only_and_leaves_no_temp_file(tmp_path):
    path = tmp_path / "nested" / "settings.json"

    persist_settings({"base_url": "http://x", "session_token": "secret"}, path)

    assert load_settings(path) == {"base_url": "http://x", "session_token": "secret"}
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    assert sorted(p.name for p in path.parent.iterdir()) == ["settings.json"]


def test_to_settings_round_trips_through_merged():
    config = ChatSyncConfig(base_url="http://x", user_id="u1", timeline_interval_s=4)
    assert ChatSyncConfig().merged(config.to_settings()) == config


def test_from_environ_maps_prefixed_keys():
    overrides = from_environ({"CHAT_SYNC_TOKEN": "t", "CHAT_SYNC_PROJECT_ID": "", "OTHER": "x"})
    assert overrides == {"session_token": "t"}


def test_unknown_keys_are_neither_loaded_nor_written(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"base_url": "http://x", "theme": "dark"}), encoding="utf-8")

    assert load_settings(path) == {"base_url": "http://x"}

    persist_settings({"user_id": "u1", "theme": "dark", "project_id": None}, path)
    assert json.loads(path.read_text(encoding="utf-8")) == {"user_id": "u1"}


def test_update_settings_merges_and_validates_before_writing(tmp_path):
    path = tmp_path / "settings.json"
    persist_settings({"base_url": "http://old", "user_id": "u1"}, path)

    config = update_settings({"base_url": "http://new", "session_token": None}, path)

    assert config.base_url == "http://new"
    assert config.user_id == "u1"
    assert load_settings(path) == {"base_url": "http://new", "user_id": "u1"}

    with pytest.raises(ValueError):
        update_settings({"timeline_interval_s": 0}, path)
    assert load_settings(path) == {"base_url": "http://new", "user_id": "u1"}
