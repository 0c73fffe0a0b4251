"""
Configuration package for the diagram recovery service
"""

from .recovery_config import RecoveryConfig, get_recovery_config, reset_recovery_config

__all__ = ["RecoveryConfig", "get_recovery_config", "reset_recovery_config"]
