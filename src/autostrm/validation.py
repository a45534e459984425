from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from jsonschema import Draft7Validator

from .discern import compile_rule_pattern
from .metadata import METADATA_PROVIDERS
from .models import MediaType
from .outputs import OUTPUT_PROVIDERS
from .sources import SOURCE_PROVIDERS


@dataclass(slots=True)
class ValidationIssue:
    """Represents a single validation problem."""

    severity: str
    path: str
    message: str
    code: str
    fix_suggestion: Optional[str] = None


@dataclass(slots=True)
class ValidationReport:
    """Aggregates validation warnings and errors."""

    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(
        self,
        severity: str,
        path: str,
        message: str,
        code: str,
        fix_suggestion: Optional[str] = None,
    ) -> None:
        issue = ValidationIssue(severity, path, message, code, fix_suggestion)
        (self.errors if severity == "error" else self.warnings).append(issue)


_MEDIA_TYPES = [member.value for member in MediaType]
_STRING_LIST = {"type": "array", "items": {"type": "string"}}


def _named_section(entry_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": ["object", "null"],
        "additionalProperties": entry_schema,
    }


NAMING_RULE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["regex"],
    "properties": {
        "regex": {"type": "string", "minLength": 1},
        "supported_media_types": {
            "oneOf": [
                {"type": "array", "items": {"type": "string", "enum": _MEDIA_TYPES}},
                {"type": "string", "enum": _MEDIA_TYPES},
            ]
        },
        "example": {"type": "string"},
    },
    "additionalProperties": True,
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "definitions": {"naming_rule": NAMING_RULE_SCHEMA},
    "properties": {
        "language": {"type": "string"},
        "sources": _named_section(
            {
                "type": "object",
                "required": ["type"],
                "properties": {
                    "type": {"type": "string", "enum": sorted(SOURCE_PROVIDERS)},
                    "path": {"type": "string"},
                    "server_address": {"type": "string"},
                    "visit_url_prefix": {"type": "string"},
                    "username": {"type": "string"},
                    "password": {"type": ["string", "number"]},
                    "use_pagination": {"type": "boolean"},
                    "usePagination": {"type": "boolean"},
                    "page_size": {"type": "integer", "minimum": 1},
                    "pageSize": {"type": "integer", "minimum": 1},
                    "timeout": {"type": "number", "exclusiveMinimum": 0},
                },
                "additionalProperties": True,
            }
        ),
        "nfo_providers": _named_section(
            {
                "type": "object",
                "required": ["type"],
                "properties": {
                    "type": {"type": "string", "enum": sorted(METADATA_PROVIDERS)},
                    "api_key": {"type": "string"},
                    "language": {"type": "string"},
                    "base_url": {"type": "string"},
                    "timeout": {"type": "number", "exclusiveMinimum": 0},
                },
                "additionalProperties": True,
            }
        ),
        "outputs": _named_section(
            {
                "type": "object",
                "required": ["type"],
                "properties": {
                    "type": {"type": "string", "enum": sorted(OUTPUT_PROVIDERS)},
                    "output_dir": {"type": "string"},
                    "library_name": {"type": "string"},
                },
                "additionalProperties": True,
            }
        ),
        "naming_rules": _named_section({"$ref": "#/definitions/naming_rule"}),
        "tasks": _named_section(
            {
                "type": "object",
                "required": ["source", "media_type", "output"],
                "properties": {
                    "source": {"type": "string"},
                    "nfo_provider": {"type": "string"},
                    "metadata_provider": {"type": "string"},
                    "media_type": {"type": "string", "enum": _MEDIA_TYPES},
                    "output": {"type": "string"},
                    "file_patterns": {"oneOf": [_STRING_LIST, {"type": "string"}]},
                    "naming_rules": _STRING_LIST,
                    "language": {"type": "string"},
                    "enabled": {"type": "boolean"},
                },
                "anyOf": [{"required": ["nfo_provider"]}, {"required": ["metadata_provider"]}],
                "additionalProperties": True,
            }
        ),
    },
    "additionalProperties": True,
}

RULES_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "definitions": {"naming_rule": NAMING_RULE_SCHEMA},
    "properties": {"naming_rules": _named_section({"$ref": "#/definitions/naming_rule"})},
    "additionalProperties": True,
}


def _format_jsonschema_path(path: Sequence[Any], prefix: str = "") -> str:
    tokens: List[str] = [prefix] if prefix else []
    for part in path:
        if isinstance(part, int) and tokens:
            tokens[-1] = f"{tokens[-1]}[{part}]"
        else:
            tokens.append(str(part))
    return ".".join(tokens) if tokens else "<root>"


def _schema_errors(data: Mapping[str, Any], schema: Dict[str, Any], report: ValidationReport, prefix: str = "") -> None:
    validator = Draft7Validator(schema)
    for error in sorted(validator.iter_errors(data), key=lambda exc: list(map(str, exc.path))):
        report.add("error", _format_jsonschema_path(error.absolute_path, prefix), error.message, "schema")


def _mapping(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


def validate_config_data(
    config_data: Mapping[str, Any],
    rules_data: Optional[Mapping[str, Any]] = None,
) -> ValidationReport:
    """Validate the main configuration and the rules file.

    Schema violations and dangling collaborator references are errors; problems
    that only make a rule or a task ineffective are reported as warnings.
    """
    report = ValidationReport()
    rules_data = rules_data or {}
    _schema_errors(config_data, CONFIG_SCHEMA, report)
    _schema_errors(rules_data, RULES_SCHEMA, report, prefix="rules")
    _validate_semantics(config_data, rules_data, report)
    return report


def _validate_semantics(
    config_data: Mapping[str, Any],
    rules_data: Mapping[str, Any],
    report: ValidationReport,
) -> None:
    rule_names: set[str] = set()
    for origin, data in (("rules", rules_data), ("", config_data)):
        for name, rule in _mapping(data, "naming_rules").items():
            rule_names.add(str(name))
            regex = rule.get("regex") if isinstance(rule, Mapping) else None
            if not isinstance(regex, str) or not regex:
                continue
            try:
                compile_rule_pattern(regex)
            except re.error as exc:
                path = ".".join(part for part in (origin, "naming_rules", str(name), "regex") if part)
                report.add(
                    "warning",
                    path,
                    f"Regex does not compile ({exc}); the rule will never match",
                    "invalid-regex",
                )

    references = {
        "source": _mapping(config_data, "sources"),
        "nfo_provider": _mapping(config_data, "nfo_providers"),
        "output": _mapping(config_data, "outputs"),
    }
    for task_name, task in _mapping(config_data, "tasks").items():
        if not isinstance(task, Mapping):
            continue
        base = f"tasks.{task_name}"
        for key, known in references.items():
            value = task.get(key)
            if value is None and key == "nfo_provider":
                value = task.get("metadata_provider")
            if isinstance(value, str) and value not in known:
                available = ", ".join(sorted(map(str, known))) or "none defined"
                report.add(
                    "error",
                    f"{base}.{key}",
                    f"Unknown {key.replace('_', ' ')} '{value}'",
                    "unknown-reference",
                    fix_suggestion=f"Use one of: {available}",
                )

        task_rules = task.get("naming_rules")
        for index, rule_name in enumerate(task_rules if isinstance(task_rules, list) else []):
            if isinstance(rule_name, str) and rule_name not in rule_names:
                report.add(
                    "warning",
                    f"{base}.naming_rules[{index}]",
                    f"Unknown naming rule '{rule_name}'",
                    "unknown-rule",
                )

        patterns = task.get("file_patterns")
        if isinstance(patterns, str):
            patterns = [patterns]
        if not patterns:
            report.add(
                "warning",
                f"{base}.file_patterns",
                "No file patterns configured; the task will not select any files",
                "no-file-patterns",
                fix_suggestion="Add a pattern such as '\\.(mkv|mp4)$'",
            )
            continue
        for index, pattern in enumerate(patterns):
            if not isinstance(pattern, str):
                continue
            try:
                re.compile(pattern)
            except re.error as exc:
                report.add(
                    "warning",
                    f"{base}.file_patterns[{index}]",
                    f"Pattern does not compile ({exc}); it will never match",
                    "invalid-regex",
                )
