"""
Configuration Management
========================

Configuration utilities for the EPUB packaging pipeline.
"""

from epubpack.config.settings import (
    BuilderConfig,
    StagingConfig,
    PackagingConfig,
    ProgressConfig,
    ValidationConfig,
    load_config,
    save_config,
    get_default_config,
)

__all__ = [
    "BuilderConfig",
    "StagingConfig",
    "PackagingConfig",
    "ProgressConfig",
    "ValidationConfig",
    "load_config",
    "save_config",
    "get_default_config",
]
