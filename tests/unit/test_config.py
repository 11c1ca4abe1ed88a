from app.config import get_settings


def test_settings_are_built_once():
    assert get_settings() is get_settings()


def test_defaults_from_config_yaml():
    settings = get_settings()
    assert settings.cancellation.urgent_window_minutes == 5
    assert settings.cancellation.normal_window_minutes == 60
    assert settings.retry.max_attempts == 4
    assert settings.work_order.id_length == 6
