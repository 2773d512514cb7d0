"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from mtime_index import __version__
from mtime_index.fingerprint import Fingerprint
from mtime_index.index.models import IndexLocation

CONFIG_FILE_NAME = "mtime_index.toml"
DEFAULT_DATA_DIR_NAME = ".mtime_index"
DEFAULT_SNAPSHOT_NAME = "snapshot"
DIAGNOSTICS_FILE_NAME = "diagnostics.jsonl"
DEFAULT_TOOL_VERSION = __version__

DEFAULT_INCLUDE_EXTENSIONS = (
    ".py",
    ".pyi",
    ".md",
    ".rst",
    ".toml",
    ".yaml",
    ".yml",
    ".json",
    ".ini",
    ".cfg",
)
DEFAULT_EXCLUDE_GLOBS = ("**/.git/**", "**/__pycache__/**", "**/.venv/**")


@dataclass(slots=True, frozen=True)
class ScanConfig:
    """Deterministic file discovery settings."""

    include_extensions: tuple[str, ...]
    exclude_globs: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class IndexSettings:
    """Up-to-date checking toggles."""

    enabled: bool


@dataclass(slots=True, frozen=True)
class FingerprintSource:
    """Inputs the run fingerprint is derived from."""

    tool_version: str
    settings: dict[str, object] = field(default_factory=dict)
    explicit: str | None = None

    def build(self) -> Fingerprint:
        """Return the explicit fingerprint, or derive one from version and settings."""
        if self.explicit is not None:
            return Fingerprint(value=self.explicit)
        return Fingerprint.from_settings(self.tool_version, self.settings)


@dataclass(slots=True, frozen=True)
class RunConfig:
    """Fully merged configuration for one index run."""

    project_root: Path
    data_dir: Path
    snapshot_path: Path
    index: IndexSettings
    scan: ScanConfig
    fingerprint_source: FingerprintSource

    @property
    def fingerprint(self) -> Fingerprint:
        return self.fingerprint_source.build()

    @property
    def diagnostics_path(self) -> Path:
        return self.data_dir / DIAGNOSTICS_FILE_NAME

    def index_location(self) -> IndexLocation:
        """Bundle the snapshot path, fingerprint and project root for the index."""
        return IndexLocation(
            snapshot_path=self.snapshot_path,
            fingerprint=self.fingerprint,
            project_root=self.project_root,
        )

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for command output."""
        return {
            "project_root": str(self.project_root),
            "data_dir": str(self.data_dir),
            "snapshot_path": str(self.snapshot_path),
            "index": {"enabled": self.index.enabled},
            "scan": {
                "include_extensions": list(self.scan.include_extensions),
                "exclude_globs": list(self.scan.exclude_globs),
            },
            "fingerprint": self.fingerprint.to_line(),
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    snapshot_path: Path | None = None
    fingerprint: str | None = None
    enabled: bool | None = None


def default_config(project_root: Path) -> RunConfig:
    """Build default config for a given project root."""
    resolved_root = project_root.resolve()
    data_dir = resolved_root / DEFAULT_DATA_DIR_NAME
    return RunConfig(
        project_root=resolved_root,
        data_dir=data_dir,
        snapshot_path=data_dir / DEFAULT_SNAPSHOT_NAME,
        index=IndexSettings(enabled=True),
        scan=ScanConfig(
            include_extensions=DEFAULT_INCLUDE_EXTENSIONS,
            exclude_globs=DEFAULT_EXCLUDE_GLOBS,
        ),
        fingerprint_source=FingerprintSource(tool_version=DEFAULT_TOOL_VERSION),
    )


def load_project_config_file(project_root: Path) -> dict[str, object]:
    """Load optional mtime_index.toml from the project root."""
    config_path = project_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    try:
        with config_path.open("rb") as handle:
            payload = tomllib.load(handle)
    except OSError as error:
        raise ValueError(f"Unable to read {CONFIG_FILE_NAME}: {error}") from error
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, section: str, field_name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field_name}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{section}.{field_name}' must contain only strings.")
        output.append(item)
    return tuple(output)


def _normalize_extensions(extensions: tuple[str, ...]) -> tuple[str, ...]:
    output: list[str] = []
    for extension in extensions:
        lowered = extension.lower()
        if lowered and not lowered.startswith("."):
            lowered = f".{lowered}"
        output.append(lowered)
    return tuple(output)


def _resolve_under(root: Path, value: Path) -> Path:
    if value.is_absolute():
        return value.resolve()
    return (root / value).resolve()


def merge_config(
    base: RunConfig, project_payload: dict[str, object], overrides: CliOverrides
) -> RunConfig:
    """Merge defaults, project config, then CLI/startup overrides."""
    index_payload = _get_table(project_payload, "index")
    scan_payload = _get_table(project_payload, "scan")
    fingerprint_payload = _get_table(project_payload, "fingerprint")

    enabled = base.index.enabled
    if "enabled" in index_payload:
        raw_enabled = index_payload["enabled"]
        if not isinstance(raw_enabled, bool):
            raise ValueError("Config field 'index.enabled' must be a boolean.")
        enabled = raw_enabled

    snapshot_path = base.snapshot_path
    if "snapshot" in index_payload:
        raw_snapshot = index_payload["snapshot"]
        if not isinstance(raw_snapshot, str) or not raw_snapshot.strip():
            raise ValueError("Config field 'index.snapshot' must be a non-empty string.")
        snapshot_path = _resolve_under(base.project_root, Path(raw_snapshot))

    include_extensions = base.scan.include_extensions
    if "include_extensions" in scan_payload:
        include_extensions = _normalize_extensions(
            _tuple_of_strings(scan_payload["include_extensions"], "scan", "include_extensions")
        )
    exclude_globs = base.scan.exclude_globs
    if "exclude_globs" in scan_payload:
        exclude_globs = _tuple_of_strings(scan_payload["exclude_globs"], "scan", "exclude_globs")

    tool_version = base.fingerprint_source.tool_version
    if "tool_version" in fingerprint_payload:
        raw_version = fingerprint_payload["tool_version"]
        if not isinstance(raw_version, str):
            raise ValueError("Config field 'fingerprint.tool_version' must be a string.")
        tool_version = raw_version
    settings = base.fingerprint_source.settings
    if "settings" in fingerprint_payload:
        raw_settings = fingerprint_payload["settings"]
        if not isinstance(raw_settings, dict):
            raise ValueError("Config field 'fingerprint.settings' must be a table.")
        settings = raw_settings

    merged = RunConfig(
        project_root=base.project_root,
        data_dir=base.data_dir,
        snapshot_path=snapshot_path,
        index=IndexSettings(enabled=enabled),
        scan=ScanConfig(include_extensions=include_extensions, exclude_globs=exclude_globs),
        fingerprint_source=FingerprintSource(tool_version=tool_version, settings=settings),
    )
    return apply_cli_overrides(
        merged,
        overrides,
        snapshot_from_project="snapshot" in index_payload,
    )


def apply_cli_overrides(
    config: RunConfig,
    overrides: CliOverrides,
    snapshot_from_project: bool = False,
) -> RunConfig:
    """Apply startup overrides at highest precedence."""
    data_dir = (overrides.data_dir or config.data_dir).resolve()

    snapshot_path = config.snapshot_path
    if overrides.snapshot_path is not None:
        snapshot_path = _resolve_under(config.project_root, overrides.snapshot_path)
    elif overrides.data_dir is not None and not snapshot_from_project:
        snapshot_path = data_dir / DEFAULT_SNAPSHOT_NAME

    fingerprint_source = config.fingerprint_source
    if overrides.fingerprint is not None:
        fingerprint_source = FingerprintSource(
            tool_version=fingerprint_source.tool_version,
            settings=fingerprint_source.settings,
            explicit=overrides.fingerprint,
        )
        # surface line breaks as a config error rather than at first use
        fingerprint_source.build()

    return RunConfig(
        project_root=config.project_root,
        data_dir=data_dir,
        snapshot_path=snapshot_path,
        index=IndexSettings(
            enabled=overrides.enabled if overrides.enabled is not None else config.index.enabled
        ),
        scan=config.scan,
        fingerprint_source=fingerprint_source,
    )


def load_effective_config(project_root: Path, overrides: CliOverrides | None = None) -> RunConfig:
    """Load effective config using merge order defaults -> project config -> overrides."""
    resolved_root = project_root.resolve()
    base = default_config(resolved_root)
    payload = load_project_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())
