from __future__ import annotations

import os

import pytest

from common.config import Config, ConfigError

ENV_KEYS = (
    "TOKEN",
    "DB_PATH",
    "AGREE_EMOJI",
    "COUNT_THRESHOLD",
    "RECENCY_WINDOW_DAYS",
    "ADMIN_USER_IDS",
    "WEBHOOK_NAME",
    "ATTACHMENT_TIMEOUT_SECONDS",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # load_dotenv writes into os.environ
    monkeypatch.setattr(os, "environ", os.environ.copy())
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return tmp_path / "missing.env"


def test_defaults(clean_env, monkeypatch):
    monkeypatch.setenv("TOKEN", "abc")

    cfg = Config(env_file=clean_env)

    assert cfg.TOKEN == "abc"
    assert cfg.DB_PATH == "channel_id.db"
    assert cfg.AGREE_EMOJI == "230782152164245505"
    assert cfg.COUNT_THRESHOLD == 1
    assert cfg.RECENCY_WINDOW_DAYS == 3
    assert cfg.ADMIN_USER_IDS == {859472531974520832}
    assert cfg.WEBHOOK_NAME == "Forwarder"
    assert cfg.ATTACHMENT_TIMEOUT_SECONDS == 15.0
    assert cfg.LOG_LEVEL == "INFO"


def test_missing_token_fails(clean_env):
    with pytest.raises(ConfigError):
        Config(env_file=clean_env)


def test_env_file_is_loaded(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("TOKEN=from-file\nCOUNT_THRESHOLD=4\n", encoding="utf-8")

    cfg = Config(env_file=env_file)

    assert cfg.TOKEN == "from-file"
    assert cfg.COUNT_THRESHOLD == 4


def test_bad_values_fall_back(clean_env, monkeypatch):
    monkeypatch.setenv("TOKEN", "abc")
    monkeypatch.setenv("COUNT_THRESHOLD", "lots")
    monkeypatch.setenv("ADMIN_USER_IDS", "1, two ,3,")

    cfg = Config(env_file=clean_env)

    assert cfg.COUNT_THRESHOLD == 1
    assert cfg.ADMIN_USER_IDS == {1, 3}


def test_overrides(clean_env):
    cfg = Config(env_file=clean_env, require_token=False, COUNT_THRESHOLD=5, AGREE_EMOJI="👍")

    assert cfg.COUNT_THRESHOLD == 5
    assert cfg.AGREE_EMOJI == "👍"


def test_unknown_override_rejected(clean_env):
    with pytest.raises(ConfigError):
        Config(env_file=clean_env, require_token=False, NOPE=1)


def test_env_file_in_working_directory_is_found(clean_env, tmp_path, monkeypatch):
    workdir = tmp_path / "deploy"
    workdir.mkdir()
    (workdir / ".env").write_text("TOKEN=from-cwd\n", encoding="utf-8")
    monkeypatch.chdir(workdir)

    cfg = Config()

    assert cfg.TOKEN == "from-cwd"
