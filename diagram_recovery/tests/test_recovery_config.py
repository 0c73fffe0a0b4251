"""
Tests for environment-driven recovery configuration.
"""

from diagram_recovery.config import RecoveryConfig, get_recovery_config, reset_recovery_config


class TestRecoveryConfig:
    """Test defaults, env loading and clamping of invalid values."""

    def test_defaults(self):
        config = RecoveryConfig()
        assert config.default_direction == "TD"
        assert config.safe_label_pattern == r"^[A-Za-z0-9_]+$"
        assert config.fallback_max_nodes == 50
        assert config.placeholder_label == "Empty Diagram"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MERMAID_RECOVERY_DEFAULT_DIRECTION", "LR")
        monkeypatch.setenv("MERMAID_RECOVERY_FALLBACK_MAX_NODES", "7")
        monkeypatch.setenv("MERMAID_CLI_BINARY", "/opt/bin/mmdc")

        config = RecoveryConfig.from_env()

        assert config.default_direction == "LR"
        assert config.fallback_max_nodes == 7
        assert config.mmdc_binary == "/opt/bin/mmdc"

    def test_invalid_values_are_clamped(self):
        config = RecoveryConfig(
            default_direction="sideways",
            safe_label_pattern="([unclosed",
            fallback_max_nodes=0,
            cache_max_entries=-1,
            placeholder_label="   ",
            render_timeout=0,
        )
        assert config.default_direction == "TD"
        assert config.safe_label_pattern == r"^[A-Za-z0-9_]+$"
        assert config.fallback_max_nodes == 50
        assert config.cache_max_entries == 128
        assert config.placeholder_label == "Empty Diagram"
        assert config.render_timeout == 30.0

    def test_direction_is_upper_cased(self):
        assert RecoveryConfig(default_direction="bt").default_direction == "BT"

    def test_singleton_and_reset(self, monkeypatch):
        reset_recovery_config()
        monkeypatch.setenv("MERMAID_RECOVERY_CACHE_MAX_ENTRIES", "3")
        try:
            first = get_recovery_config()
            assert first is get_recovery_config()
            assert first.cache_max_entries == 3
        finally:
            reset_recovery_config()
