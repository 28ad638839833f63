"""
Configuration Settings
======================

Configuration dataclasses for the EPUB packaging pipeline.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Dict, Any
import json
import logging

import yaml

logger = logging.getLogger(__name__)


@dataclass
class StagingConfig:
    """Working-root and staging configuration."""

    base_dir: str = ""  # Empty means use system temp
    working_dir_name: str = "epub_creation"
    excluded_files: List[str] = field(
        default_factory=lambda: ["script.js", "EPUB/script.js"]
    )
    strip_tags: List[str] = field(default_factory=lambda: ["img", "script"])
    cleanup_on_success: bool = True


@dataclass
class PackagingConfig:
    """Container layout and archive configuration."""

    package_dir: str = "EPUB"
    content_dir: str = "content"
    nav_filenames: List[str] = field(
        default_factory=lambda: ["toc.xhtml", "toc.html", "nav.xhtml"]
    )
    ncx_filename: str = "toc.ncx"
    compression_level: int = 9  # DEFLATE level (0-9)
    include_directory_entries: bool = True
    manifest_assets: bool = True


@dataclass
class ProgressConfig:
    """
    Progress band boundaries.

    Staging reports in [0, staging_end), repair in [staging_end, repair_end)
    and archiving in [repair_end, 100].
    """

    staging_end: float = 40.0
    repair_end: float = 60.0

    def __post_init__(self):
        if not 0 < self.staging_end < self.repair_end < 100:
            raise ValueError(
                f"Invalid progress bands: 0 < {self.staging_end} < {self.repair_end} < 100 required"
            )


@dataclass
class ValidationConfig:
    """Post-package validation configuration."""

    validate_on_package: bool = True
    strict: bool = False


@dataclass
class BuilderConfig:
    """
    Complete builder configuration.

    Contains all configuration for an EPUB build:
    - Staging (working root, excluded files, sanitizing)
    - Packaging layout and compression
    - Progress bands
    - Validation of the produced archive

    Example:
        config = BuilderConfig()
        config.packaging.compression_level = 6
        config.validation.strict = True
        save_config(config, Path("epubpack.yaml"))
    """

    staging: StagingConfig = field(default_factory=StagingConfig)
    packaging: PackagingConfig = field(default_factory=PackagingConfig)
    progress: ProgressConfig = field(default_factory=ProgressConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    # General settings
    output_dir: str = "output"
    log_level: str = "INFO"

    # Custom extensions
    custom: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'staging': asdict(self.staging),
            'packaging': asdict(self.packaging),
            'progress': asdict(self.progress),
            'validation': asdict(self.validation),
            'output_dir': self.output_dir,
            'log_level': self.log_level,
            'custom': self.custom,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'BuilderConfig':
        """Create from dictionary."""
        config = cls()

        if 'staging' in data:
            config.staging = StagingConfig(**data['staging'])
        if 'packaging' in data:
            config.packaging = PackagingConfig(**data['packaging'])
        if 'progress' in data:
            config.progress = ProgressConfig(**data['progress'])
        if 'validation' in data:
            config.validation = ValidationConfig(**data['validation'])

        if 'output_dir' in data:
            config.output_dir = data['output_dir']
        if 'log_level' in data:
            config.log_level = data['log_level']
        if 'custom' in data:
            config.custom = data['custom']

        return config


def load_config(config_path: Path) -> BuilderConfig:
    """
    Load configuration from file.

    Supports JSON and YAML formats based on file extension.

    Args:
        config_path: Path to config file

    Returns:
        BuilderConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is not supported
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    with open(config_path, 'r', encoding='utf-8') as f:
        if suffix in ['.yaml', '.yml']:
            data = yaml.safe_load(f) or {}
        elif suffix == '.json':
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {suffix}")

    logger.info(f"Loaded configuration from {config_path}")
    return BuilderConfig.from_dict(data)


def save_config(config: BuilderConfig, config_path: Path) -> None:
    """
    Save configuration to file.

    Supports JSON and YAML formats based on file extension.

    Args:
        config: BuilderConfig to save
        config_path: Path to save config file

    Raises:
        ValueError: If file format is not supported
    """
    suffix = config_path.suffix.lower()
    if suffix not in ['.yaml', '.yml', '.json']:
        raise ValueError(f"Unsupported config format: {suffix}")

    data = config.to_dict()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        if suffix == '.json':
            json.dump(data, f, indent=2)
        else:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved configuration to {config_path}")


def get_default_config() -> BuilderConfig:
    """Get default configuration."""
    return BuilderConfig()
