from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """
    Harness-provided services for one adapter invocation.

    Keep this stable: adapters should only depend on these fields.
    """

    workspace_root: Path
    cancel: threading.Event = field(default_factory=threading.Event)
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("snippet_harness.runner")
    )
    env_passthrough: tuple[str, ...] = ()
    secret_placeholders: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    keep_workdirs: bool = False

    @property
    def cancelled(self) -> bool:
        return self.cancel.is_set()
