import pytest
from pydantic import ValidationError

from shotcraft._core.environment import ShotcraftConfig, resolve_api_key, settings


class TestShotcraftConfig:
    def test_defaults(self):
        """Compiler defaults match the documented few-shot setup."""
        config = ShotcraftConfig()
        assert config.shot_count == 2
        assert config.student_count == 3
        assert config.holdout_size == 3
        assert config.max_retries == 3
        assert config.request_timeout == 60.0

    def test_log_level_is_normalised(self):
        """Log levels are upper-cased."""
        assert ShotcraftConfig(log_level='debug').log_level == 'DEBUG'

    def test_invalid_log_level_rejected(self):
        """Unknown log levels fail validation."""
        with pytest.raises(ValidationError):
            ShotcraftConfig(log_level='LOUD')

    def test_non_positive_timeout_rejected(self):
        """A zero timeout would fail every request, so it is rejected."""
        with pytest.raises(ValidationError):
            ShotcraftConfig(request_timeout=0)

    def test_max_retries_must_be_positive(self):
        with pytest.raises(ValidationError):
            ShotcraftConfig(max_retries=0)


class TestResolveApiKey:
    def test_direct_argument_wins(self, monkeypatch):
        monkeypatch.setattr(settings, 'deepseek_api_key', 'from-settings')
        assert resolve_api_key('direct', 'deepseek_api_key') == 'direct'

    def test_falls_back_to_settings(self, monkeypatch):
        monkeypatch.setattr(settings, 'deepseek_api_key', 'from-settings')
        assert resolve_api_key(None, 'DEEPSEEK_API_KEY') == 'from-settings'

    def test_missing_key_returns_none(self, monkeypatch):
        monkeypatch.setattr(settings, 'deepseek_api_key', None)
        assert resolve_api_key(None, 'deepseek_api_key') is None


@pytest.mark.parametrize('field', ['shot_count', 'student_count', 'holdout_size'])
def test_compiler_counts_must_be_positive(field):
    with pytest.raises(ValidationError):
        ShotcraftConfig(**{field: 0})


def test_settings_read_from_environment(monkeypatch):
    from shotcraft._core.environment import AppSettings

    monkeypatch.setenv('SHOT_COUNT', '4')
    monkeypatch.setenv('LLM_MODEL_NAME', 'deepseek-chat')

    loaded = AppSettings()

    assert loaded.shot_count == 4
    assert loaded.llm_model_name == 'deepseek-chat'
