"""
Configuration Management System
===============================

Provides dataclass-based configuration with YAML file loading support.
All settings are validated and have sensible defaults.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Any, Dict
import yaml

from inbox_sorter.config.platform import PlatformProfile
from inbox_sorter.utils.exceptions import ConfigurationError
from inbox_sorter.utils.logging_config import LoggingConfig, get_logger

logger = get_logger(__name__)

TAXONOMY_POLICIES = ("fail", "fallback")


def _optional_path(value: Any) -> Optional[Path]:
    if value in (None, ""):
        return None
    return Path(str(value)).expanduser()


@dataclass
class PathsConfig:
    """Filesystem roots.

    Attributes:
        base_directory: Parent of the default inbox/sorted/delete roots.
        inbox: Directory scanned for incoming files.
        sorted: Destination tree of category folders.
        quarantine: Destination for duplicate content.
    """
    base_directory: Optional[Path] = None
    inbox: Optional[Path] = None
    sorted: Optional[Path] = None
    quarantine: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PathsConfig":
        """Create PathsConfig from dictionary."""
        if not data:
            return cls()
        return cls(
            base_directory=_optional_path(data.get("base_directory")),
            inbox=_optional_path(data.get("inbox")),
            sorted=_optional_path(data.get("sorted")),
            quarantine=_optional_path(data.get("quarantine")),
        )

    def resolve(self, profile: PlatformProfile) -> "ResolvedPaths":
        """Fill unset roots from the base directory and validate them.

        Args:
            profile: Platform profile supplying the default base directory.

        Returns:
            ResolvedPaths with absolute roots.

        Raises:
            ConfigurationError: If two roots are the same directory.
        """
        base = self.base_directory or profile.default_base_directory
        resolved = ResolvedPaths(
            inbox=Path(self.inbox or base / "inbox").absolute(),
            sorted=Path(self.sorted or base / "sorted").absolute(),
            quarantine=Path(self.quarantine or base / "delete").absolute(),
        )
        resolved.validate()
        return resolved


@dataclass(frozen=True)
class ResolvedPaths:
    """The three roots the engine is allowed to touch."""
    inbox: Path
    sorted: Path
    quarantine: Path

    def validate(self) -> None:
        """Check that the three roots are distinct directories."""
        roots = {
            "inbox": self.inbox.resolve(),
            "sorted": self.sorted.resolve(),
            "quarantine": self.quarantine.resolve(),
        }
        if len(set(roots.values())) != len(roots):
            raise ConfigurationError(
                "Inbox, sorted and quarantine directories must be distinct",
                details={name: str(path) for name, path in roots.items()},
            )


@dataclass
class TaxonomyConfig:
    """Taxonomy source settings.

    Attributes:
        file: YAML/JSON taxonomy document; None uses the built-in taxonomy.
        on_error: "fail" aborts on a missing/malformed document,
                  "fallback" classifies everything as Miscellaneous.
    """
    file: Optional[Path] = None
    on_error: str = "fail"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaxonomyConfig":
        """Create TaxonomyConfig from dictionary."""
        if not data:
            return cls()
        config = cls(
            file=_optional_path(data.get("file")),
            on_error=str(data.get("on_error", cls.on_error)),
        )
        config.validate()
        return config

    @property
    def lenient(self) -> bool:
        """Whether taxonomy problems degrade to the Miscellaneous fallback."""
        return self.on_error == "fallback"

    def validate(self) -> None:
        if self.on_error not in TAXONOMY_POLICIES:
            raise ConfigurationError(
                f"taxonomy.on_error must be one of {TAXONOMY_POLICIES}, got {self.on_error!r}",
                config_key="taxonomy.on_error",
            )


@dataclass
class ExclusionsConfig:
    """Exclusion source settings.

    Attributes:
        directories_file: Document with directory name patterns.
        files_file: Document with file name patterns.
    """
    directories_file: Optional[Path] = None
    files_file: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExclusionsConfig":
        """Create ExclusionsConfig from dictionary."""
        if not data:
            return cls()
        return cls(
            directories_file=_optional_path(data.get("directories_file")),
            files_file=_optional_path(data.get("files_file")),
        )


@dataclass
class ProcessingConfig:
    """Intake processing settings.

    Attributes:
        workers: Worker threads for hashing and placement; 1 is sequential.
        classify_sidecars: Route platform metadata sidecars to the
                           system category instead of skipping them.
    """
    workers: int = 1
    classify_sidecars: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessingConfig":
        """Create ProcessingConfig from dictionary."""
        if not data:
            return cls()
        try:
            workers = int(data.get("workers", cls.workers))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                "processing.workers must be an integer",
                config_key="processing.workers",
                expected_type="int",
                cause=e,
            )
        config = cls(
            workers=workers,
            classify_sidecars=bool(data.get("classify_sidecars", cls.classify_sidecars)),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.workers < 1:
            raise ConfigurationError(
                f"processing.workers must be at least 1, got {self.workers}",
                config_key="processing.workers",
            )


@dataclass
class WatcherConfig:
    """Watch mode settings.

    Attributes:
        quiet_seconds: Time without inbox events before a new run starts.
        poll_interval: How often the watcher checks whether a run is due.
    """
    quiet_seconds: float = 5.0
    poll_interval: float = 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatcherConfig":
        """Create WatcherConfig from dictionary."""
        if not data:
            return cls()
        return cls(
            quiet_seconds=float(data.get("quiet_seconds", cls.quiet_seconds)),
            poll_interval=float(data.get("poll_interval", cls.poll_interval)),
        )


def _logging_from_dict(data: Dict[str, Any]) -> LoggingConfig:
    if not data:
        return LoggingConfig()
    defaults = LoggingConfig()
    return LoggingConfig(
        level=str(data.get("level", defaults.level)),
        log_dir=_optional_path(data.get("log_dir")) or defaults.log_dir,
        console_output=bool(data.get("console_output", defaults.console_output)),
        file_output=bool(data.get("file_output", defaults.file_output)),
        json_format=bool(data.get("json_format", defaults.json_format)),
    )


@dataclass
class Config:
    """Main configuration container.

    Aggregates all configuration sections and provides loading from YAML.
    """
    paths: PathsConfig = field(default_factory=PathsConfig)
    taxonomy: TaxonomyConfig = field(default_factory=TaxonomyConfig)
    exclusions: ExclusionsConfig = field(default_factory=ExclusionsConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML file.

        Args:
            config_path: Path to the configuration file. If None, looks for
                        config.yaml in the current directory.

        Returns:
            Config instance with loaded settings.

        Raises:
            ConfigurationError: If the file is not valid YAML or holds invalid values.
        """
        if config_path is None:
            config_path = Path("config.yaml")
        config_path = Path(config_path).expanduser()

        if not config_path.exists():
            logger.warning(f"Config file not found at {config_path}, using defaults")
            return cls()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse config file: {e}")
            raise ConfigurationError(
                f"Failed to parse config file {config_path}",
                cause=e,
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {config_path} must contain a mapping",
                expected_type="mapping",
            )

        logger.info(f"Loaded configuration from {config_path}")
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        return cls(
            paths=PathsConfig.from_dict(data.get("paths", {})),
            taxonomy=TaxonomyConfig.from_dict(data.get("taxonomy", {})),
            exclusions=ExclusionsConfig.from_dict(data.get("exclusions", {})),
            processing=ProcessingConfig.from_dict(data.get("processing", {})),
            watcher=WatcherConfig.from_dict(data.get("watcher", {})),
            logging=_logging_from_dict(data.get("logging", {})),
        )

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file.

        Args:
            config_path: Path where to save the configuration.
        """
        def as_str(path: Optional[Path]) -> Optional[str]:
            return str(path) if path is not None else None

        data = {
            "paths": {
                "base_directory": as_str(self.paths.base_directory),
                "inbox": as_str(self.paths.inbox),
                "sorted": as_str(self.paths.sorted),
                "quarantine": as_str(self.paths.quarantine),
            },
            "taxonomy": {
                "file": as_str(self.taxonomy.file),
                "on_error": self.taxonomy.on_error,
            },
            "exclusions": {
                "directories_file": as_str(self.exclusions.directories_file),
                "files_file": as_str(self.exclusions.files_file),
            },
            "processing": {
                "workers": self.processing.workers,
                "classify_sidecars": self.processing.classify_sidecars,
            },
            "watcher": {
                "quiet_seconds": self.watcher.quiet_seconds,
                "poll_interval": self.watcher.poll_interval,
            },
            "logging": {
                "level": self.logging.level,
                "log_dir": str(self.logging.log_dir),
                "console_output": self.logging.console_output,
                "file_output": self.logging.file_output,
                "json_format": self.logging.json_format,
            },
        }

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Saved configuration to {config_path}")
