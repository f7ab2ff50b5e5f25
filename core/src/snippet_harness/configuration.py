from __future__ import annotations

import hashlib
import json
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from snippet_harness.contracts import HarnessConfig

# ${NAME} or ${NAME:-fallback}
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<fallback>[^}]*))?\}")


class ConfigError(ValueError):
    pass


def load_harness_config(
    path: str | Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> HarnessConfig:
    """
    Build the harness config from an optional YAML file plus overrides.

    Environment references are expanded in the file only; override values are
    taken literally.
    """
    payload: dict[str, Any] = {}
    if path is not None:
        payload = expand_env_references(read_config_file(path))
    for dotted, value in (overrides or {}).items():
        set_dotted(payload, dotted, value)
    return harness_config_from_dict(payload)


def harness_config_from_dict(payload: Mapping[str, Any]) -> HarnessConfig:
    try:
        return HarnessConfig.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigError(_describe_validation_error(exc)) from exc


def read_config_file(path: str | Path) -> dict[str, Any]:
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping at the top level")
    return document


def expand_env_references(node: Any, *, location: str = "config") -> Any:
    """Replace `${NAME}` / `${NAME:-fallback}` in every string of a YAML tree."""
    if isinstance(node, dict):
        return {
            str(key): expand_env_references(value, location=f"{location}.{key}")
            for key, value in node.items()
        }
    if isinstance(node, list):
        return [
            expand_env_references(item, location=f"{location}[{index}]")
            for index, item in enumerate(node)
        ]
    if not isinstance(node, str):
        return node

    def lookup(match: re.Match[str]) -> str:
        value = os.environ.get(match["name"])
        if value is not None:
            return value
        if match["fallback"] is not None:
            return match["fallback"]
        raise ConfigError(f"{location} references unset environment variable {match['name']}")

    return _ENV_REFERENCE.sub(lookup, node)


def set_dotted(payload: dict[str, Any], dotted: str, value: Any) -> None:
    """Assign `value` at `a.b.c`, creating intermediate sections as needed."""
    *sections, leaf = dotted.split(".")
    if not leaf or not all(sections):
        raise ConfigError(f"Invalid override path '{dotted}'")
    node = payload
    for section in sections:
        child = node.setdefault(section, {})
        if child is None:
            child = node[section] = {}
        if not isinstance(child, dict):
            raise ConfigError(f"Override '{dotted}' descends into non-mapping '{section}'")
        node = child
    node[leaf] = value


def parse_override(token: str) -> tuple[str, Any]:
    """Parse a `dotted.path=value` CLI token; the value is read as YAML."""
    dotted, sep, raw_value = token.partition("=")
    dotted = dotted.strip()
    if not sep or not dotted:
        raise ConfigError(f"Override must look like 'section.key=value', got '{token}'")
    try:
        return dotted, yaml.safe_load(raw_value) if raw_value else ""
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid override value in '{token}': {exc}") from exc


def config_fingerprint(config: HarnessConfig) -> str:
    """Short content hash of the effective config, recorded in the report."""
    canonical = json.dumps(config.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:12]


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors(include_url=False):
        where = ".".join(str(part) for part in ("config", *error["loc"]))
        problems.append(f"{where}: {error['msg']}")
    return "; ".join(problems)
