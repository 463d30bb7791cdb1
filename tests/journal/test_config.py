"""Tests for sancho.journal.config."""

import pytest

from sancho.core.config import Config
from sancho.core.exceptions import ConfigurationError
from sancho.journal.config import SyncConfig


class TestSyncConfig:
    def test_defaults(self):
        config = SyncConfig()
        assert config.save_delay == 2.5
        assert config.tag_extraction_delay == 1.5
        assert config.max_retries == 3
        assert config.error_display_duration == 5.0
        assert config.switch_policy == "silent"

    def test_backoff_doubles_and_caps(self):
        config = SyncConfig()
        assert [config.backoff_delay(n) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 8.0]

    def test_negative_delay_rejected(self):
        with pytest.raises(ConfigurationError, match="save_delay"):
            SyncConfig(save_delay=-1)

    def test_unknown_policy_rejected(self):
        with pytest.raises(ConfigurationError, match="switch_policy"):
            SyncConfig(switch_policy="ask-later")


class TestFromConfig:
    def test_reads_journal_section(self, tmp_config_file):
        config = SyncConfig.from_config(Config(config_file=tmp_config_file))
        assert config.save_delay == 2.0
        assert config.max_retries == 2
        assert config.switch_policy == "prompt"
        assert config.retry_max_delay == 8.0

    def test_env_strings_are_coerced(self, monkeypatch, tmp_dir):
        monkeypatch.setenv("SANCHO_JOURNAL__SAVE_DELAY", "0.5")
        monkeypatch.setenv("SANCHO_JOURNAL__MAX_RETRIES", "5")
        monkeypatch.setenv("SANCHO_JOURNAL__SWITCH_POLICY", "PROMPT")
        config = SyncConfig.from_config(Config(data_dir=tmp_dir))
        assert config.save_delay == 0.5
        assert config.max_retries == 5
        assert config.switch_policy == "prompt"

    def test_garbage_value_raises(self, monkeypatch, tmp_dir):
        monkeypatch.setenv("SANCHO_JOURNAL__SAVE_DELAY", "soon")
        with pytest.raises(ConfigurationError, match="journal.save_delay"):
            SyncConfig.from_config(Config(data_dir=tmp_dir))
