from backend.app.core.settings import Settings, get_settings


def test_settings_defaults():
    settings = get_settings()
    assert settings.app_name == "Flopy CRM"
    assert settings.environment == "development"
    assert isinstance(settings.secret_key, str) and settings.secret_key
    assert isinstance(settings.database_url, str) and settings.database_url
    assert settings.session_cookie_name == "crm_session"
    assert settings.items_per_page == 10
    assert settings.session_timeout == 1800
    assert settings.csrf_token_lifetime == 3600


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("CRM_ITEMS_PER_PAGE", "25")
    monkeypatch.setenv("CRM_SESSION_TIMEOUT", "60")
    settings = Settings()
    assert settings.items_per_page == 25
    assert settings.session_timeout == 60


def test_blank_environment_value_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("CRM_MIN_PASSWORD_LENGTH", "")
    assert Settings().min_password_length == 8
