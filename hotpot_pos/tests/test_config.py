import pytest
from pydantic import ValidationError

from ..config.environments.development import DevelopmentSettings
from ..config.settings import Settings, load_settings


class TestSettings:
    """配置加载测试"""

    def test_defaults(self):
        config = Settings(_env_file=None)
        assert config.service_weekdays == [2, 5]
        assert (config.service_open_time, config.service_close_time) == ("16:30", "20:30")
        assert config.slot_minutes == 15
        assert config.capacity_per_slot == 7
        assert config.daily_limited_item_name == "牛雜鍋"
        assert config.daily_limit == 50
        assert config.staff_passphrase is None

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CAPACITY_PER_SLOT", "9")
        monkeypatch.setenv("SERVICE_WEEKDAYS", "[0, 3]")
        config = Settings(_env_file=None)
        assert config.capacity_per_slot == 9
        assert config.service_weekdays == [0, 3]

    def test_development_environment(self):
        config = load_settings("development")
        assert isinstance(config, DevelopmentSettings)
        assert config.debug is True
        assert config.staff_passphrase == "dev-kitchen"

    def test_default_environment(self, monkeypatch):
        monkeypatch.delenv("HOTPOT_ENV", raising=False)
        assert type(load_settings()) is Settings

    @pytest.mark.parametrize("minutes", [0, -15])
    def test_slot_minutes_must_be_positive(self, minutes):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, slot_minutes=minutes)
