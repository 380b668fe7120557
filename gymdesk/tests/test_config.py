import pytest

from gymdesk.config import ConfigError, load_settings


def test_hosted_store_settings():
    settings = load_settings(
        {"GYMDESK_STORE_URL": "https://abc.example.test/", "GYMDESK_STORE_KEY": "anon-key"}
    )
    assert settings.uses_remote_store
    assert settings.store_url == "https://abc.example.test"
    assert settings.store_timeout == 10.0
    assert settings.checkin_display_seconds == 5


def test_local_database_settings():
    settings = load_settings(
        {
            "GYMDESK_LOCAL_DB": "gym.db",
            "GYMDESK_STORE_TIMEOUT": "2.5",
            "GYMDESK_CHECKIN_DISPLAY_SECONDS": "8",
        }
    )
    assert not settings.uses_remote_store
    assert settings.local_db == "gym.db"
    assert settings.store_timeout == 2.5
    assert settings.checkin_display_seconds == 8


def test_missing_store_configuration_is_an_error():
    with pytest.raises(ConfigError, match="GYMDESK_LOCAL_DB"):
        load_settings({})


@pytest.mark.parametrize(
    "env, missing",
    [
        ({"GYMDESK_STORE_URL": "https://abc.example.test"}, "GYMDESK_STORE_KEY"),
        ({"GYMDESK_STORE_KEY": "anon-key", "GYMDESK_LOCAL_DB": "gym.db"}, "GYMDESK_STORE_URL"),
    ],
)
def test_half_configured_store_is_an_error(env, missing):
    with pytest.raises(ConfigError, match=missing):
        load_settings(env)


@pytest.mark.parametrize("value", ["soon", "0", "-3"])
def test_bad_numbers_are_rejected(value):
    with pytest.raises(ConfigError, match="GYMDESK_CHECKIN_DISPLAY_SECONDS"):
        load_settings({"GYMDESK_LOCAL_DB": "gym.db", "GYMDESK_CHECKIN_DISPLAY_SECONDS": value})


def test_reads_process_environment(monkeypatch):
    monkeypatch.setenv("GYMDESK_LOCAL_DB", "from-env.db")
    monkeypatch.delenv("GYMDESK_STORE_URL", raising=False)
    monkeypatch.delenv("GYMDESK_STORE_KEY", raising=False)
    assert load_settings().local_db == "from-env.db"
