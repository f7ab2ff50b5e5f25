from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

WORKSPACE_ENV_VAR = "SNIPPET_HARNESS_WORKDIR"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

logger = logging.getLogger("snippet_harness.workspace")


def resolve_workspace_root(configured: str | Path | None = None) -> Path:
    """
    Pick the directory that per-snippet work directories are created under.

    Tried in order: the configured path, $SNIPPET_HARNESS_WORKDIR,
    ./.snippet-work and a directory under the system temp dir. The first one
    that can be created and written to wins.
    """
    preferred = [configured, os.environ.get(WORKSPACE_ENV_VAR)]
    candidates = [Path(value).expanduser() for value in preferred if value]
    candidates += [
        Path.cwd() / ".snippet-work",
        Path(tempfile.gettempdir()) / "snippet-harness-work",
    ]
    for candidate in candidates:
        if _usable(candidate):
            return candidate
        logger.warning("Workspace candidate %s is not writable; trying the next one", candidate)
    raise RuntimeError(
        "No writable workspace root among: " + ", ".join(str(path) for path in candidates)
    )


def build_snippet_workdir(snippet_id: str, *, workspace_root: Path) -> Path:
    """Create a fresh, uniquely named work directory for one invocation."""
    workspace_root.mkdir(parents=True, exist_ok=True)
    prefix = _UNSAFE_CHARS.sub("_", snippet_id).strip("_")[:60] or "snippet"
    return Path(tempfile.mkdtemp(prefix=f"{prefix}-", dir=workspace_root))


def remove_workdir(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError:
        logger.warning("Failed to remove work directory %s", path, exc_info=True)


def _usable(directory: Path) -> bool:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile(dir=directory):
            pass
    except OSError:
        return False
    return True
