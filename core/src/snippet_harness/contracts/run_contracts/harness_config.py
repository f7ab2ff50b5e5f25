from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from snippet_harness.contracts.run_contracts.run_result import RUN_STATUSES

_DEFAULT_TRANSIENT_PATTERNS = [
    r"connection reset",
    r"connection refused",
    r"ECONNRESET",
    r"ECONNREFUSED",
    r"ETIMEDOUT",
    r"temporary failure in name resolution",
    r"could not resolve host",
    r"remote end closed connection",
    r"too ?many ?requests",
    r"service ?unavailable",
    r"bad ?gateway",
    r"gateway ?time-?out",
    r"rate limit exceeded",
]

_DEFAULT_ENV_PASSTHROUGH = [
    "PATH",
    "HOME",
    "LANG",
    "LC_ALL",
    "TMPDIR",
    "USER",
    "GOPATH",
    "GOCACHE",
    "GOMODCACHE",
    "GOROOT",
    "JAVA_HOME",
    "MAVEN_OPTS",
    "GRADLE_USER_HOME",
    "NODE_PATH",
    "NPM_CONFIG_CACHE",
    "PNPM_HOME",
    "VIRTUAL_ENV",
    "SSL_CERT_FILE",
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "NO_PROXY",
]


class SecretConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    placeholders: list[str] = Field(default_factory=list)


class SnippetsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    root: str = "snippets/snippets"
    ignore: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    service_hosts: list[str] = Field(default_factory=lambda: ["api.cohere.com"])


class ExecutionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    workers: int = Field(default=4, ge=1)
    service_concurrency: int = Field(default=2, ge=1)
    min_request_interval_s: float = Field(default=0.0, ge=0.0)
    snippet_timeout_s: float = Field(default=120.0, gt=0.0)
    global_timeout_s: float = Field(default=1800.0, gt=0.0)
    cancel_grace_s: float = Field(default=10.0, ge=0.0)
    workspace_root: str | None = None
    keep_workdirs: bool = False
    env_passthrough: list[str] = Field(default_factory=lambda: list(_DEFAULT_ENV_PASSTHROUGH))


class RetryConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_retries: int = Field(default=3, ge=0)
    initial_backoff_s: float = Field(default=1.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    max_backoff_s: float = Field(default=30.0, ge=0.0)
    transient_patterns: list[str] = Field(
        default_factory=lambda: list(_DEFAULT_TRANSIENT_PATTERNS)
    )

    @model_validator(mode="after")
    def _validate_backoff(self) -> RetryConfig:
        if self.max_backoff_s < self.initial_backoff_s:
            raise ValueError("max_backoff_s must be >= initial_backoff_s")
        return self


class RunnerCommandConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    command: list[str] | None = None
    enabled: bool = True

    @field_validator("command")
    @classmethod
    def _validate_command(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and (not value or not all(part for part in value)):
            raise ValueError("command must be a non-empty list of non-empty strings")
        return value


class ReportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str | None = None
    fail_on: list[str] = Field(default_factory=list)
    annotations: bool = False
    include_output: bool = True
    max_output_chars: int = Field(default=4000, ge=0)

    @field_validator("fail_on")
    @classmethod
    def _validate_fail_on(cls, value: list[str]) -> list[str]:
        unknown = sorted(set(value) - set(RUN_STATUSES))
        if unknown:
            raise ValueError(f"unknown statuses {unknown}; expected any of {list(RUN_STATUSES)}")
        return value

    @model_validator(mode="after")
    def _validate_annotations(self) -> ReportConfig:
        # annotations share stdout, so the JSON report has to go to a file
        if self.annotations and not self.path:
            raise ValueError("annotations require report.path")
        return self


class HarnessConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    snippets: SnippetsConfig = Field(default_factory=SnippetsConfig)
    secrets: list[SecretConfig] = Field(
        default_factory=lambda: [SecretConfig(name="CO_API_KEY", placeholders=["<<apiKey>>"])]
    )
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    runners: dict[str, RunnerCommandConfig] = Field(default_factory=dict)
    report: ReportConfig = Field(default_factory=ReportConfig)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("runners", mode="before")
    @classmethod
    def _coerce_runners_dict(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        if isinstance(value, dict):
            return value
        raise ValueError("runners must be a mapping of language -> runner settings")

    @field_validator("secrets")
    @classmethod
    def _validate_unique_secrets(cls, value: list[SecretConfig]) -> list[SecretConfig]:
        names = [secret.name for secret in value]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate secret names {duplicates}")
        return value

    def secret_names(self) -> list[str]:
        return [secret.name for secret in self.secrets]

    def runner_command(self, language: str) -> list[str] | None:
        runner = self.runners.get(language)
        return list(runner.command) if runner is not None and runner.command else None
