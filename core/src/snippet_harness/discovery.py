from __future__ import annotations

import fnmatch
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from snippet_harness.contracts import Entrypoint, HarnessConfig, Language, Snippet

logger = logging.getLogger("snippet_harness.discovery")

SIDECAR_SUFFIX = ".snippet.yaml"
BUNDLE_SIDECAR = "snippet.yaml"
UNSUPPORTED_LANGUAGE = "unsupported language"

_LANGUAGE_SUFFIXES: Mapping[Language, tuple[str, ...]] = {
    Language.SHELL: (".sh", ".bash"),
    Language.CURL: (".sh", ".bash"),
    Language.PYTHON: (".py",),
    Language.TYPESCRIPT: (".ts", ".mts"),
    Language.GO: (".go",),
    Language.JAVA: (".java",),
}

_BUNDLE_ENTRIES: Mapping[Language, tuple[str, ...]] = {
    Language.SHELL: ("main.sh", "default.sh", "run.sh"),
    Language.CURL: ("main.sh", "default.sh", "run.sh"),
    Language.PYTHON: ("main.py", "__main__.py"),
    Language.TYPESCRIPT: ("index.ts", "main.ts"),
    Language.GO: ("main.go",),
    Language.JAVA: ("Main.java",),
}

_BUILD_FILES = ("go.mod", "pom.xml", "build.gradle", "build.gradle.kts", "package.json")


class DiscoveryError(RuntimeError):
    pass


class SnippetSidecar(BaseModel):
    """Optional per-variant metadata next to a snippet."""

    model_config = ConfigDict(extra="forbid")

    skip: str | None = None
    timeout_s: float | None = Field(default=None, gt=0.0)
    required_secrets: list[str] | None = None
    calls_service: bool | None = None
    entrypoint: Entrypoint | None = None
    entry: str | None = None


@dataclass(frozen=True, slots=True)
class DiscoverySettings:
    ignore: tuple[str, ...] = ()
    secrets: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    service_hosts: tuple[str, ...] = ()

    @classmethod
    def from_config(cls, config: HarnessConfig) -> DiscoverySettings:
        return cls(
            ignore=tuple(config.snippets.ignore),
            secrets={secret.name: tuple(secret.placeholders) for secret in config.secrets},
            service_hosts=tuple(config.snippets.service_hosts),
        )


def discover(root: str | Path, *, settings: DiscoverySettings | None = None) -> tuple[Snippet, ...]:
    """
    Index every example under `root` as `<language>/<feature>/<variant>`.

    Only an unreadable root aborts discovery; a malformed example becomes a
    placeholder snippet carrying `discovery_error`.
    """
    settings = settings or DiscoverySettings()
    root_path = Path(root)
    if not root_path.is_dir():
        raise DiscoveryError(f"Snippet root is not a readable directory: {root_path}")
    try:
        language_dirs = _list_dir(root_path)
    except OSError as exc:
        raise DiscoveryError(f"Cannot read snippet root {root_path}: {exc}") from exc

    found: dict[str, Snippet] = {}
    for language_dir in language_dirs:
        tag = language_dir.name
        if not language_dir.is_dir():
            logger.debug("Ignoring non-snippet file %s", language_dir)
            continue
        try:
            feature_dirs = _list_dir(language_dir)
        except OSError as exc:
            _add(
                found,
                _placeholder(tag, "", language_dir, f"unreadable directory: {exc}", variant="*"),
            )
            continue
        for feature_dir in feature_dirs:
            if not feature_dir.is_dir():
                logger.debug("Ignoring non-snippet file %s", feature_dir)
                continue
            try:
                variants = _list_dir(feature_dir)
            except OSError as exc:
                _add(
                    found,
                    _placeholder(
                        tag,
                        feature_dir.name,
                        feature_dir,
                        f"unreadable directory: {exc}",
                        variant="*",
                    ),
                )
                continue
            for variant in variants:
                if variant.is_file() and variant.name.endswith(SIDECAR_SUFFIX):
                    continue
                _add(found, _load_variant(tag, feature_dir.name, variant, settings))

    snippets = tuple(found[snippet_id] for snippet_id in sorted(found))
    logger.info("Discovered %d snippets under %s", len(snippets), root_path)
    return snippets


def detect_required_secrets(body: str, secrets: Mapping[str, Sequence[str]]) -> tuple[str, ...]:
    required: list[str] = []
    for name, placeholders in secrets.items():
        if _env_reference_pattern(name).search(body) or any(
            token and token in body for token in placeholders
        ):
            required.append(name)
    return tuple(sorted(required))


def snippet_id_for(language: str, feature: str, variant: str) -> str:
    return "/".join(part for part in (language, feature, variant) if part)


def _load_variant(tag: str, feature: str, path: Path, settings: DiscoverySettings) -> Snippet:
    variant = path.stem if path.is_file() else path.name
    snippet_id = snippet_id_for(tag, feature, variant)
    language = Language.from_tag(tag)
    if language is None:
        return Snippet(
            id=snippet_id,
            language=tag,
            source_path=path,
            body="",
            skip_reason=UNSUPPORTED_LANGUAGE,
        )

    try:
        sidecar = _load_sidecar(path)
    except ValueError as exc:
        return _placeholder(tag, feature, path, str(exc), variant=variant)

    bundle_root: Path | None = None
    if path.is_dir():
        bundle_root = path
        try:
            entry = _resolve_bundle_entry(path, language, sidecar)
        except OSError as exc:
            return _placeholder(
                tag, feature, path, f"unreadable directory: {exc}", variant=variant
            )
        if entry is None:
            return _placeholder(tag, feature, path, "cannot determine entry file", variant=variant)
    else:
        entry = path
        if path.suffix not in _LANGUAGE_SUFFIXES[language]:
            return _placeholder(
                tag, feature, path, f"unexpected file type '{path.suffix}'", variant=variant
            )

    try:
        body = entry.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return _placeholder(tag, feature, path, f"unreadable source: {exc}", variant=variant)
    if not body.strip():
        return _placeholder(tag, feature, path, "empty snippet body", variant=variant)

    if sidecar.required_secrets is not None:
        required_secrets = tuple(sorted(sidecar.required_secrets))
    else:
        required_secrets = detect_required_secrets(body, settings.secrets)
    calls_service = sidecar.calls_service
    if calls_service is None:
        calls_service = bool(required_secrets) or any(
            host in body for host in settings.service_hosts
        )

    return Snippet(
        id=snippet_id,
        language=tag,
        source_path=entry,
        body=body,
        bundle_root=bundle_root,
        required_secrets=required_secrets,
        entrypoint=sidecar.entrypoint or _infer_entrypoint(language, bundle_root),
        calls_service=calls_service,
        timeout_s=sidecar.timeout_s,
        skip_reason=sidecar.skip or _ignored_by(snippet_id, settings.ignore),
    )


def _load_sidecar(path: Path) -> SnippetSidecar:
    sidecar_path = (
        path / BUNDLE_SIDECAR if path.is_dir() else path.with_name(path.stem + SIDECAR_SUFFIX)
    )
    if not sidecar_path.is_file():
        return SnippetSidecar()
    try:
        payload: Any = yaml.safe_load(sidecar_path.read_text(encoding="utf-8")) or {}
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"invalid sidecar {sidecar_path.name}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"invalid sidecar {sidecar_path.name}: root must be a mapping")
    try:
        return SnippetSidecar.model_validate(payload)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors(include_url=False)
        )
        raise ValueError(f"invalid sidecar {sidecar_path.name}: {details}") from exc


def _resolve_bundle_entry(
    bundle: Path, language: Language, sidecar: SnippetSidecar
) -> Path | None:
    if sidecar.entry:
        candidate = bundle / sidecar.entry
        return candidate if candidate.is_file() else None
    for name in _BUNDLE_ENTRIES[language]:
        candidate = bundle / name
        if candidate.is_file():
            return candidate
    sources = [
        child
        for child in _list_dir(bundle)
        if child.is_file() and child.suffix in _LANGUAGE_SUFFIXES[language]
    ]
    return sources[0] if len(sources) == 1 else None


def _infer_entrypoint(language: Language, bundle_root: Path | None) -> Entrypoint:
    if bundle_root is not None and any((bundle_root / name).is_file() for name in _BUILD_FILES):
        return "build_tool"
    if language is Language.GO or (language is Language.JAVA and bundle_root is not None):
        return "compile_run"
    return "interpret"


def _ignored_by(snippet_id: str, patterns: Sequence[str]) -> str | None:
    for pattern in patterns:
        if fnmatch.fnmatchcase(snippet_id, pattern):
            return f"ignored by pattern '{pattern}'"
    return None


def _placeholder(
    tag: str, feature: str, path: Path, error: str, *, variant: str | None = None
) -> Snippet:
    name = variant if variant is not None else (path.stem if path.is_file() else path.name)
    logger.warning("Malformed snippet at %s: %s", path, error)
    return Snippet(
        id=snippet_id_for(tag, feature, name),
        language=tag,
        source_path=path,
        body="",
        discovery_error=error,
    )


def _add(found: dict[str, Snippet], snippet: Snippet) -> None:
    if snippet.id not in found:
        found[snippet.id] = snippet
        return
    duplicate_id = f"{snippet.id}~{snippet.source_path.name}"
    logger.warning("Duplicate snippet id %s at %s", snippet.id, snippet.source_path)
    found[duplicate_id] = Snippet(
        id=duplicate_id,
        language=snippet.language,
        source_path=snippet.source_path,
        body="",
        discovery_error=f"duplicate snippet id '{snippet.id}'",
    )


def _list_dir(path: Path) -> list[Path]:
    return sorted(child for child in path.iterdir() if not child.name.startswith("."))


def _env_reference_pattern(name: str) -> re.Pattern[str]:
    quoted = rf"['\"]{re.escape(name)}['\"]"
    return re.compile(
        rf"\$\{{?{re.escape(name)}\b"
        rf"|(?i:getenv)\(\s*{quoted}"
        rf"|environ(?:\.get\(|\[)\s*{quoted}"
        rf"|process\.env(?:\.{re.escape(name)}\b|\[\s*{quoted})"
    )
