"""
Diagram Recovery Configuration

Centralized, environment-driven configuration for the Mermaid recovery
pipeline. Values are read from environment variables (optionally loaded from a
.env file) and validated on construction so a bad deployment setting degrades
to a safe default instead of breaking every render.
"""

import os
import re
import logging
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

VALID_DIRECTIONS = ("TD", "TB", "LR", "RL", "BT")


@dataclass
class RecoveryConfig:
    """Configuration for the Mermaid diagram recovery pipeline"""
    max_input_length: int = 10000
    default_direction: str = "TD"
    safe_label_pattern: str = r"^[A-Za-z0-9_]+$"
    fallback_max_nodes: int = 50
    placeholder_label: str = "Empty Diagram"
    cache_max_entries: int = 128
    validation_timeout: float = 10.0
    render_timeout: float = 30.0
    node_binary: str = "node"
    mmdc_binary: str = "mmdc"
    log_level: str = "INFO"

    def __post_init__(self):
        self.validate()

    @classmethod
    def from_env(cls) -> 'RecoveryConfig':
        """Create configuration from environment variables"""
        load_dotenv()

        return cls(
            max_input_length=int(os.getenv('MERMAID_RECOVERY_MAX_INPUT_LENGTH', '10000')),
            default_direction=os.getenv('MERMAID_RECOVERY_DEFAULT_DIRECTION', 'TD'),
            safe_label_pattern=os.getenv('MERMAID_RECOVERY_SAFE_LABEL_PATTERN', r'^[A-Za-z0-9_]+$'),
            fallback_max_nodes=int(os.getenv('MERMAID_RECOVERY_FALLBACK_MAX_NODES', '50')),
            placeholder_label=os.getenv('MERMAID_RECOVERY_PLACEHOLDER_LABEL', 'Empty Diagram'),
            cache_max_entries=int(os.getenv('MERMAID_RECOVERY_CACHE_MAX_ENTRIES', '128')),
            validation_timeout=float(os.getenv('MERMAID_RECOVERY_VALIDATION_TIMEOUT', '10.0')),
            render_timeout=float(os.getenv('MERMAID_RECOVERY_RENDER_TIMEOUT', '30.0')),
            node_binary=os.getenv('MERMAID_NODE_BINARY', 'node'),
            mmdc_binary=os.getenv('MERMAID_CLI_BINARY', 'mmdc'),
            log_level=os.getenv('MERMAID_RECOVERY_LOG_LEVEL', 'INFO'),
        )

    def validate(self) -> None:
        """Clamp invalid values back to safe defaults"""
        direction = (self.default_direction or "").upper()
        if direction not in VALID_DIRECTIONS:
            logger.warning(f"⚠️ Invalid default direction '{self.default_direction}', using 'TD'")
            direction = "TD"
        self.default_direction = direction

        try:
            re.compile(self.safe_label_pattern)
        except re.error as e:
            logger.warning(f"⚠️ Invalid safe label pattern '{self.safe_label_pattern}' ({e}), using default")
            self.safe_label_pattern = r"^[A-Za-z0-9_]+$"

        if self.max_input_length < 100:
            logger.warning(f"⚠️ Invalid max_input_length '{self.max_input_length}', using 10000")
            self.max_input_length = 10000

        if self.fallback_max_nodes < 1:
            logger.warning(f"⚠️ Invalid fallback_max_nodes '{self.fallback_max_nodes}', using 50")
            self.fallback_max_nodes = 50

        if self.cache_max_entries < 1:
            logger.warning(f"⚠️ Invalid cache_max_entries '{self.cache_max_entries}', using 128")
            self.cache_max_entries = 128

        if not self.placeholder_label.strip():
            self.placeholder_label = "Empty Diagram"

        if self.validation_timeout <= 0:
            self.validation_timeout = 10.0
        if self.render_timeout <= 0:
            self.render_timeout = 30.0

    def summary(self) -> dict:
        """Non-sensitive view of the configuration for health endpoints"""
        return {
            "default_direction": self.default_direction,
            "fallback_max_nodes": self.fallback_max_nodes,
            "cache_max_entries": self.cache_max_entries,
            "validation_timeout": self.validation_timeout,
            "render_timeout": self.render_timeout,
        }


# Global configuration instance
_config_instance = None


def get_recovery_config() -> RecoveryConfig:
    """Get singleton recovery configuration"""
    global _config_instance
    if _config_instance is None:
        _config_instance = RecoveryConfig.from_env()
        logger.info(f"✅ Recovery config loaded: direction={_config_instance.default_direction}, "
                    f"cache={_config_instance.cache_max_entries}")
    return _config_instance


def reset_recovery_config() -> None:
    """Drop the cached configuration so the next call re-reads the environment"""
    global _config_instance
    _config_instance = None
