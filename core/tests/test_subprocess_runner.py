import os
import sys
import textwrap
from pathlib import Path

import pytest

from snippet_harness.contracts import ExecutionContext, RunnerInfo, Snippet
from snippet_harness.runtime.subprocess_runner import (
    CommandStep,
    SubprocessRunner,
    build_environment,
    substitute_placeholders,
)

pytestmark = pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX-only")


class _InterpreterRunner(SubprocessRunner):
    @property
    def info(self) -> RunnerInfo:
        return RunnerInfo(key="test.interpreter", name="Interpreter", languages=("python",))

    def default_command(self) -> tuple[str, ...]:
        return (sys.executable,)

    def plan(self, snippet, *, workdir, entry):
        return [CommandStep((*self.command, str(entry.relative_to(workdir))))]


def _snippet(body, *, name="main.py", required_secrets=(), bundle_root=None, source_path=None):
    return Snippet(
        id=f"python/test/{Path(name).stem}",
        language="python",
        source_path=source_path or Path("/snippets/python/test") / name,
        body=textwrap.dedent(body),
        bundle_root=bundle_root,
        required_secrets=tuple(required_secrets),
    )


@pytest.fixture
def context(tmp_path):
    return ExecutionContext(
        workspace_root=tmp_path / "work",
        env_passthrough=("PATH",),
        secret_placeholders={"CO_API_KEY": ("<<apiKey>>",)},
    )


def test_zero_exit_is_pass(context):
    result = _InterpreterRunner().execute(_snippet("print('hello')\n"), {}, 30, context=context)

    assert result.status == "pass"
    assert result.exit_code == 0
    assert result.stdout.strip() == "hello"
    assert result.duration_ms >= 0


def test_non_zero_exit_is_fail_with_output(context):
    body = """
    import sys
    print('HTTP/1.1 400 Bad Request', file=sys.stderr)
    sys.exit(2)
    """

    result = _InterpreterRunner().execute(_snippet(body), {}, 30, context=context)

    assert result.status == "fail"
    assert result.exit_code == 2
    assert "400 Bad Request" in result.stderr
    assert result.message == "run exited with status 2"


def test_missing_interpreter_is_toolchain_error(context):
    runner = _InterpreterRunner(command=["no-such-interpreter-xyz"])

    result = runner.execute(_snippet("print('x')\n"), {}, 30, context=context)

    assert result.status == "toolchain_error"
    assert result.message == "Toolchain not found: no-such-interpreter-xyz"


def test_timeout_is_reported_and_process_killed(context):
    body = "import time\ntime.sleep(60)\n"

    result = _InterpreterRunner().execute(_snippet(body), {}, 1.0, context=context)

    assert result.status == "timeout"
    assert result.exit_code is None
    assert result.duration_ms < 15000


def test_cancelled_context_resolves_as_timeout(context):
    context.cancel.set()

    result = _InterpreterRunner().execute(_snippet("print('x')\n"), {}, 30, context=context)

    assert result.status == "timeout"
    assert "Cancelled" in (result.message or "")


def test_only_declared_secrets_reach_the_subprocess(context, monkeypatch):
    monkeypatch.setenv("HARNESS_PRIVATE", "do-not-leak")
    body = """
    import os
    for name in ('CO_API_KEY', 'OTHER_SECRET', 'HARNESS_PRIVATE'):
        print(name, os.environ.get(name, '-'))
    """
    snippet = _snippet(body, required_secrets=("CO_API_KEY",))

    result = _InterpreterRunner().execute(
        snippet,
        {"CO_API_KEY": "key-1", "OTHER_SECRET": "other"},
        30,
        context=context,
    )

    assert result.status == "pass"
    assert result.stdout.splitlines() == [
        "CO_API_KEY key-1",
        "OTHER_SECRET -",
        "HARNESS_PRIVATE -",
    ]


def test_placeholders_are_substituted_for_declared_secrets_only(context):
    declared = _snippet("print('<<apiKey>>')\n", required_secrets=("CO_API_KEY",))
    undeclared = _snippet("print('<<apiKey>>')\n", name="other.py")

    runner = _InterpreterRunner()
    with_secret = runner.execute(declared, {"CO_API_KEY": "key-1"}, 30, context=context)
    without_secret = runner.execute(undeclared, {"CO_API_KEY": "key-1"}, 30, context=context)

    assert with_secret.stdout.strip() == "key-1"
    assert without_secret.stdout.strip() == "<<apiKey>>"


def test_workdir_is_removed_after_execute(context):
    _InterpreterRunner().execute(_snippet("print('x')\n"), {}, 30, context=context)

    assert list(context.workspace_root.iterdir()) == []


def test_directory_variants_are_copied_whole(context, tmp_path):
    bundle = tmp_path / "bundle"
    (bundle / "pkg").mkdir(parents=True)
    (bundle / "pkg" / "helper.py").write_text("VALUE = 'from helper'\n", encoding="utf-8")
    body = "from pkg.helper import VALUE\nprint(VALUE)\n"
    (bundle / "main.py").write_text(body, encoding="utf-8")
    snippet = _snippet(body, bundle_root=bundle, source_path=bundle / "main.py")

    result = _InterpreterRunner().execute(snippet, {}, 30, context=context)

    assert result.status == "pass"
    assert result.stdout.strip() == "from helper"
    assert (bundle / "main.py").read_text(encoding="utf-8") == body


def test_build_environment_uses_allowlist(monkeypatch):
    monkeypatch.setenv("PATH", "/usr/bin")
    monkeypatch.setenv("SECRET_IN_PARENT", "x")

    env = build_environment(("PATH", "NOT_SET_VAR"), {"CO_API_KEY": "k"})

    assert env == {"PATH": "/usr/bin", "CO_API_KEY": "k"}


def test_substitute_placeholders():
    body = "key=<<apiKey>> other=<<otherKey>>"

    rendered = substitute_placeholders(
        body,
        secrets={"CO_API_KEY": "k"},
        placeholders={"CO_API_KEY": ("<<apiKey>>",), "OTHER": ("<<otherKey>>",)},
    )

    assert rendered == "key=k other=<<otherKey>>"
