"""Settings for profilekit.

Values come from ``PROFILEKIT_*`` environment variables, then the YAML file
in the platform config directory (``~/.config/profilekit/config.yaml`` on
Linux, ``%APPDATA%\\profilekit`` on Windows), then the defaults below.
"""

from contextvars import ContextVar
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import AliasChoices, Field
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from platformdirs import user_config_dir


APP_NAME = "profilekit"

# Path settings left unset resolve to these names inside the config directory
DEFAULT_PATHS = {
    "config_path": "config.yaml",
    "fragments_dir": "fragments",
    "db_path": "profilekit.db",
    "baseline_path": "benchmark-baseline.json",
}


# Set while load_from_file builds a config; read by settings_customise_sources
_config_file: ContextVar[Optional[Path]] = ContextVar("profilekit_config_file", default=None)


def default_config_dir() -> Path:
    """Platform config directory for profilekit."""
    return Path(user_config_dir(APP_NAME, appauthor=False))


class YamlFileSettingsSource(PydanticBaseSettingsSource):
    """Settings from a YAML mapping, keyed by field name.

    Unknown keys are dropped and a missing file contributes nothing.
    """

    def __init__(self, settings_cls: type[BaseSettings], path: Path):
        super().__init__(settings_cls)
        self.path = path
        self.values: dict[str, Any] = {}
        if path.exists():
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"{path}: config file must be a mapping")
            fields = settings_cls.model_fields
            self.values = {k: v for k, v in data.items() if k in fields}

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self.values.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self.values)


class ProfileConfig(BaseSettings):
    """Everything a profile session reads at startup.

    An environment variable beats the config file, which beats the default.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROFILEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Fragment Settings
    fragments_dir: Optional[Path] = Field(
        default=None,
        description="Directory holding user fragment files"
    )

    enable_builtin_fragments: bool = Field(
        default=True,
        description="Load the fragments bundled with profilekit"
    )

    disabled_fragments: list[str] = Field(
        default_factory=list,
        description="Fragment names that are never loaded"
    )

    # Probe Settings
    enable_probe_cache: bool = Field(
        default=True,
        description="Persist tool availability probes between sessions"
    )

    probe_cache_ttl: int = Field(
        default=86400,
        description="Seconds a persisted probe result stays valid"
    )

    probe_timeout: float = Field(
        default=5.0,
        description="Seconds allowed for a tool version probe"
    )

    # Runner Settings
    throttle_limit: int = Field(
        default=5,
        description="Default number of parallel workers"
    )

    regression_threshold: float = Field(
        default=0.2,
        description="Allowed slowdown ratio before a benchmark counts as a regression"
    )

    # Paths and diagnostics
    config_path: Optional[Path] = Field(
        default=None,
        description="YAML file the settings are read from"
    )

    debug: bool = Field(
        default=False,
        description="Shorthand for debug level 2"
    )

    debug_level: int = Field(
        default=0,
        ge=0,
        le=3,
        description="Logging verbosity (0 quiet .. 3 trace)",
        # Environment names first so they outrank the config file
        validation_alias=AliasChoices(
            "PROFILEKIT_DEBUG_LEVEL", "PS_PROFILE_DEBUG", "debug_level"
        ),
    )

    # Storage Settings
    db_path: Optional[Path] = Field(
        default=None,
        description="SQLite file holding probes, snapshots and benchmarks"
    )

    baseline_path: Optional[Path] = Field(
        default=None,
        description="Path to the startup benchmark baseline"
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        config_dir = default_config_dir()
        for name, filename in DEFAULT_PATHS.items():
            if getattr(self, name) is None:
                setattr(self, name, config_dir / filename)

    def effective_debug_level(self) -> int:
        """Debug level after applying the ``debug`` shorthand."""
        if self.debug:
            return max(self.debug_level, 2)
        return self.debug_level

    def is_fragment_disabled(self, name: str) -> bool:
        """Check whether a fragment is switched off."""
        return name.lower() in {n.lower() for n in self.disabled_fragments}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources = (init_settings, env_settings, dotenv_settings)
        config_file = _config_file.get()
        if config_file is not None:
            sources += (YamlFileSettingsSource(settings_cls, config_file),)
        return sources + (file_secret_settings,)

    @classmethod
    def load_from_file(cls, config_path: Optional[Path] = None) -> "ProfileConfig":
        """Settings with ``config_path`` layered under the environment.

        The default location is used when ``config_path`` is omitted. A
        missing file yields the defaults, remembering where it would live
        so a later ``save_to_file`` creates it there.
        """
        path = config_path or default_config_dir() / DEFAULT_PATHS["config_path"]
        token = _config_file.set(path)
        try:
            return cls(config_path=path)
        finally:
            _config_file.reset(token)

    def save_to_file(self, config_path: Optional[Path] = None) -> None:
        """Write every set value to YAML, creating the directory if needed."""
        path = config_path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        values = self.model_dump(mode="json", exclude_none=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(values, f, default_flow_style=False, sort_keys=True)
