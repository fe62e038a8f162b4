"""
Configuration
"""
from .manager import (
    ConfigManager,
    TransferConfig,
    DatabaseSettings,
    MirrorMode,
    Environment,
    same_collection
)
