# tests/core/test_config.py
"""Settings loading and the startup environment check"""

from fixflow.core.config import Settings, settings, validate_required_settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("OPENAI_API_KEY", "OPENAI_APIKEY", "REDIS_URL", "API_KEY", "CLASSIFIER_MODEL"):
            monkeypatch.delenv(name, raising=False)

        config = Settings(_env_file=None)

        assert config.CLASSIFIER_MODEL == "gpt-4o-mini"
        assert config.CLASSIFIER_TIMEOUT_SECONDS == 15.0
        assert config.SESSION_KEY_PREFIX == "fixflow"
        assert config.REDIS_URL is None

    def test_openai_key_alias(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_APIKEY", "sk-alias")

        assert Settings(_env_file=None).OPENAI_API_KEY == "sk-alias"


class TestValidateRequiredSettings:

    def test_missing_values(self, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        monkeypatch.setattr(settings, "API_KEY", None)

        assert validate_required_settings() is False

    def test_complete(self, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
        monkeypatch.setattr(settings, "API_KEY", "key")

        assert validate_required_settings() is True
