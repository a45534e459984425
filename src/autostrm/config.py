from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, TypeVar

import yaml

from .errors import ConfigurationError, ConfigurationMissingError
from .logging_utils import render_fields_block
from .models import MediaType
from .utils import env_path, load_yaml_file

LOGGER = logging.getLogger(__name__)

CONFIG_PATH_ENV = "CONFIG_PATH"
RULES_PATH_ENV = "RULES_PATH"
BASE_OUTPUT_DIR_ENV = "BASE_OUTPUT_DIR"
LOGGER_CONFIG_ENV = "LOGGER_CONFIG"

DEFAULT_CONFIG_PATH = "/auto-strm/config/config.yaml"
DEFAULT_RULES_PATH = "/auto-strm/config/rules.yaml"
DEFAULT_BASE_OUTPUT_DIR = "/auto-strm/strm/"
DEFAULT_LOGGER_CONFIG = "/auto-strm/config/logger.yaml"

DEFAULT_LANGUAGE = "en"
DEFAULT_PAGE_SIZE = 1000
DEFAULT_TIMEOUT = 30.0

T = TypeVar("T")


@dataclass(frozen=True)
class SourceConfig:
    name: str
    type: str
    path: str = "/"
    server_address: str | None = None
    visit_url_prefix: str | None = None
    username: str | None = None
    password: str | None = None
    use_pagination: bool = False
    page_size: int = DEFAULT_PAGE_SIZE
    timeout: float = DEFAULT_TIMEOUT


@dataclass(frozen=True)
class MetadataProviderConfig:
    name: str
    type: str
    api_key: str = ""
    language: str | None = None
    base_url: str | None = None
    timeout: float = DEFAULT_TIMEOUT


@dataclass(frozen=True)
class NamingRule:
    name: str
    regex: str
    supported_media_types: tuple[MediaType, ...] = ()
    example: str = ""

    def supports(self, media_type: MediaType) -> bool:
        return media_type in self.supported_media_types


@dataclass(frozen=True)
class OutputConfig:
    name: str
    type: str
    output_dir: str = ""
    library_name: str | None = None


@dataclass(frozen=True)
class TaskConfig:
    name: str
    source: str
    nfo_provider: str
    media_type: MediaType
    output: str
    file_patterns: tuple[str, ...] = ()
    naming_rules: tuple[str, ...] | None = None
    language: str = DEFAULT_LANGUAGE
    enabled: bool = True


@dataclass(frozen=True)
class Settings:
    config_path: Path
    rules_path: Path
    base_output_dir: Path
    logger_config_path: Path

    @classmethod
    def from_env(
        cls,
        *,
        config_path: Path | None = None,
        rules_path: Path | None = None,
        base_output_dir: Path | None = None,
        logger_config_path: Path | None = None,
    ) -> "Settings":
        """Resolve file locations, preferring explicit arguments over environment variables."""
        return cls(
            config_path=config_path or env_path(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH),
            rules_path=rules_path or env_path(RULES_PATH_ENV, DEFAULT_RULES_PATH),
            base_output_dir=base_output_dir or env_path(BASE_OUTPUT_DIR_ENV, DEFAULT_BASE_OUTPUT_DIR),
            logger_config_path=logger_config_path or env_path(LOGGER_CONFIG_ENV, DEFAULT_LOGGER_CONFIG),
        )


@dataclass(frozen=True)
class AppConfig:
    """Immutable view of the merged configuration for one run.

    Callers that need fresh values build a new instance with :func:`load_config`.
    """

    settings: Settings
    language: str = DEFAULT_LANGUAGE
    sources: Mapping[str, SourceConfig] = field(default_factory=dict)
    nfo_providers: Mapping[str, MetadataProviderConfig] = field(default_factory=dict)
    outputs: Mapping[str, OutputConfig] = field(default_factory=dict)
    tasks: Mapping[str, TaskConfig] = field(default_factory=dict)
    # tasks whose definitions could not be built, name -> reason
    task_errors: Mapping[str, str] = field(default_factory=dict)
    naming_rules: tuple[NamingRule, ...] = ()

    def source(self, name: str) -> SourceConfig:
        return _lookup(self.sources, "Source", name)

    def nfo_provider(self, name: str) -> MetadataProviderConfig:
        return _lookup(self.nfo_providers, "NFO provider", name)

    def output(self, name: str) -> OutputConfig:
        return _lookup(self.outputs, "Output", name)

    def task(self, name: str) -> TaskConfig:
        return _lookup(self.tasks, "Task", name)

    def output_directory(self, output: OutputConfig) -> Path:
        return self.settings.base_output_dir / output.output_dir

    def rules_for_task(self, task: TaskConfig) -> list[NamingRule]:
        """Return the merged rules a task may use, keeping the merged order."""
        if task.naming_rules is None:
            LOGGER.debug(render_fields_block("Using Global Naming Rules", {"Task": task.name}, pad_top=False))
            return list(self.naming_rules)

        allowed = set(task.naming_rules)
        selected = [rule for rule in self.naming_rules if rule.name in allowed]
        unknown = sorted(allowed - {rule.name for rule in selected})
        if unknown:
            LOGGER.warning(
                render_fields_block(
                    "Unknown Naming Rules Referenced",
                    {"Task": task.name, "Rules": unknown},
                )
            )
        LOGGER.debug(
            render_fields_block(
                "Using Task Naming Rules",
                {"Task": task.name, "Rules": [rule.name for rule in selected]},
                pad_top=False,
            )
        )
        return selected


def _lookup(mapping: Mapping[str, T], kind: str, name: str) -> T:
    try:
        return mapping[name]
    except KeyError:
        raise ConfigurationMissingError(kind, name) from None


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _ensure_string_list(value: Any, *, field_name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigurationError(f"'{field_name}' must be provided as a list of strings")
    result: list[str] = []
    for index, entry in enumerate(value):
        if not isinstance(entry, (str, int, float)):
            raise ConfigurationError(f"'{field_name}[{index}]' must be a string")
        cleaned = str(entry).strip()
        if cleaned:
            result.append(cleaned)
    return result


def _as_int(value: Any, *, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{field_name}' must be an integer") from exc


def _as_float(value: Any, *, field_name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{field_name}' must be a number") from exc


def _build_named_section(
    data: Mapping[str, Any],
    section: str,
    builder: Callable[[str, dict[str, Any]], T],
    *,
    errors: dict[str, str] | None = None,
) -> dict[str, T]:
    """Build every entry of a ``name -> definition`` section.

    When ``errors`` is given, an entry that fails to build is recorded there
    under its name instead of failing the whole section.
    """
    raw = data.get(section) or {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"'{section}' must be a mapping of name -> definition")

    built: dict[str, T] = {}
    for key, entry in raw.items():
        name = str(key)
        if entry is None:
            entry = {}
        try:
            if not isinstance(entry, Mapping):
                raise ConfigurationError(f"'{section}.{name}' must be a mapping")
            built[name] = builder(name, dict(entry))
        except ConfigurationError as exc:
            if errors is None:
                raise
            errors[name] = str(exc)
            LOGGER.error(
                render_fields_block("Invalid Configuration Entry", {"Entry": f"{section}.{name}", "Error": exc})
            )
    return built


def _build_source_config(name: str, data: dict[str, Any]) -> SourceConfig:
    source_type = _clean_str(data.get("type"))
    if not source_type:
        raise ConfigurationError(f"'sources.{name}.type' is required")
    page_size = _as_int(_first(data, "page_size", "pageSize", default=DEFAULT_PAGE_SIZE), field_name=f"sources.{name}.page_size")
    if page_size <= 0:
        raise ConfigurationError(f"'sources.{name}.page_size' must be greater than 0")
    return SourceConfig(
        name=name,
        type=source_type.lower(),
        path=str(data.get("path") or "/"),
        server_address=_clean_str(data.get("server_address")),
        visit_url_prefix=_clean_str(data.get("visit_url_prefix")),
        username=_clean_str(data.get("username")),
        password=None if data.get("password") is None else str(data["password"]),
        use_pagination=bool(_first(data, "use_pagination", "usePagination", default=False)),
        page_size=page_size,
        timeout=_as_float(data.get("timeout", DEFAULT_TIMEOUT), field_name=f"sources.{name}.timeout"),
    )


def _build_provider_config(name: str, data: dict[str, Any]) -> MetadataProviderConfig:
    provider_type = _clean_str(data.get("type"))
    if not provider_type:
        raise ConfigurationError(f"'nfo_providers.{name}.type' is required")
    return MetadataProviderConfig(
        name=name,
        type=provider_type.lower(),
        api_key=str(data.get("api_key") or ""),
        language=_clean_str(data.get("language")),
        base_url=_clean_str(data.get("base_url")),
        timeout=_as_float(data.get("timeout", DEFAULT_TIMEOUT), field_name=f"nfo_providers.{name}.timeout"),
    )


def _build_output_config(name: str, data: dict[str, Any]) -> OutputConfig:
    output_type = _clean_str(data.get("type"))
    if not output_type:
        raise ConfigurationError(f"'outputs.{name}.type' is required")
    return OutputConfig(
        name=name,
        type=output_type.lower(),
        output_dir=str(data.get("output_dir") or ""),
        library_name=_clean_str(data.get("library_name")),
    )


def _build_naming_rule(name: str, data: dict[str, Any]) -> NamingRule:
    regex = data.get("regex")
    if regex is None or not str(regex):
        raise ConfigurationError(f"Naming rule '{name}' is missing 'regex'")
    media_types: list[MediaType] = []
    for value in _ensure_string_list(data.get("supported_media_types"), field_name=f"naming_rules.{name}.supported_media_types"):
        try:
            media_types.append(MediaType.parse(value))
        except ValueError as exc:
            raise ConfigurationError(f"Naming rule '{name}': {exc}") from exc
    return NamingRule(
        name=name,
        regex=str(regex),
        supported_media_types=tuple(media_types),
        example=str(data.get("example") or ""),
    )


def _task_builder(default_language: str) -> Callable[[str, dict[str, Any]], TaskConfig]:
    def build(name: str, data: dict[str, Any]) -> TaskConfig:
        references: dict[str, str] = {}
        for field_name, keys in (
            ("source", ("source",)),
            ("nfo_provider", ("nfo_provider", "metadata_provider")),
            ("output", ("output",)),
        ):
            value = _clean_str(_first(data, *keys))
            if not value:
                raise ConfigurationError(f"'tasks.{name}.{field_name}' is required")
            references[field_name] = value

        try:
            media_type = MediaType.parse(data.get("media_type"))
        except ValueError as exc:
            raise ConfigurationError(f"Task '{name}': {exc}") from exc

        rules_raw = data.get("naming_rules")
        naming_rules = None
        if isinstance(rules_raw, list):
            naming_rules = tuple(_ensure_string_list(rules_raw, field_name=f"tasks.{name}.naming_rules"))
        elif rules_raw is not None:
            raise ConfigurationError(f"'tasks.{name}.naming_rules' must be a list of rule names")

        return TaskConfig(
            name=name,
            media_type=media_type,
            file_patterns=tuple(_ensure_string_list(data.get("file_patterns"), field_name=f"tasks.{name}.file_patterns")),
            naming_rules=naming_rules,
            language=_clean_str(data.get("language")) or default_language,
            enabled=bool(data.get("enabled", True)),
            **references,
        )

    return build


def load_yaml_document(path: Path) -> dict[str, Any]:
    """Load a YAML mapping, treating a missing file as empty."""
    if not path.exists():
        LOGGER.warning(render_fields_block("YAML File Not Found, Using Empty Defaults", {"Path": path}))
        return {}

    try:
        data = load_yaml_file(path)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Unable to parse YAML file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Unable to read {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    LOGGER.debug(render_fields_block("Loaded YAML File", {"Path": path, "Keys": list(data)}, pad_top=False))
    return data


def merge_naming_rules(rules_data: Mapping[str, Any], config_data: Mapping[str, Any]) -> tuple[NamingRule, ...]:
    """Merge rules-file rules with config rules; config entries override by name."""
    merged = _build_named_section(rules_data, "naming_rules", _build_naming_rule)
    merged.update(_build_named_section(config_data, "naming_rules", _build_naming_rule))
    return tuple(merged.values())


def build_app_config(
    config_data: Mapping[str, Any],
    rules_data: Mapping[str, Any],
    settings: Settings,
) -> AppConfig:
    language = _clean_str(config_data.get("language")) or DEFAULT_LANGUAGE
    task_errors: dict[str, str] = {}
    tasks = _build_named_section(config_data, "tasks", _task_builder(language), errors=task_errors)
    return AppConfig(
        settings=settings,
        language=language,
        sources=MappingProxyType(_build_named_section(config_data, "sources", _build_source_config)),
        nfo_providers=MappingProxyType(_build_named_section(config_data, "nfo_providers", _build_provider_config)),
        outputs=MappingProxyType(_build_named_section(config_data, "outputs", _build_output_config)),
        tasks=MappingProxyType(tasks),
        task_errors=MappingProxyType(task_errors),
        naming_rules=merge_naming_rules(rules_data, config_data),
    )


def load_config(settings: Settings | None = None) -> AppConfig:
    settings = settings or Settings.from_env()
    config_data = load_yaml_document(settings.config_path)
    rules_data = load_yaml_document(settings.rules_path)
    config = build_app_config(config_data, rules_data, settings)
    LOGGER.info(
        render_fields_block(
            "Configuration Loaded",
            {
                "Config": settings.config_path,
                "Rules": settings.rules_path,
                "Tasks": len(config.tasks),
                "Invalid Tasks": len(config.task_errors),
                "Naming Rules": len(config.naming_rules),
            },
        )
    )
    return config
