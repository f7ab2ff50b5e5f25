import os
from pathlib import Path

import pytest

from runners.go import GoRunner
from runners.java import JavaRunner
from runners.java.runner import main_class
from runners.python import PythonRunner
from runners.shell import ShellRunner
from runners.typescript import TypeScriptRunner
from snippet_harness.contracts import ExecutionContext, RunnerAdapter, Snippet


def _snippet(language, body="", *, bundle_root=None, entrypoint="interpret"):
    return Snippet(
        id=f"{language}/chat/default",
        language=language,
        source_path=Path("unused"),
        body=body,
        bundle_root=bundle_root,
        entrypoint=entrypoint,
    )


def _argvs(steps):
    return [list(step.argv) for step in steps]


def test_all_runners_satisfy_the_adapter_protocol():
    runners = [ShellRunner(), PythonRunner(), TypeScriptRunner(), GoRunner(), JavaRunner()]

    assert all(isinstance(runner, RunnerAdapter) for runner in runners)
    assert ShellRunner().info.languages == ("shell", "curl")


def test_shell_runs_entry_with_bash(tmp_path):
    steps = ShellRunner().plan(_snippet("curl"), workdir=tmp_path, entry=tmp_path / "default.sh")

    assert _argvs(steps) == [["bash", "default.sh"]]


def test_command_override_replaces_interpreter(tmp_path):
    runner = PythonRunner(command=["python3.12", "-X", "dev"])

    steps = runner.plan(_snippet("python"), workdir=tmp_path, entry=tmp_path / "default.py")

    assert _argvs(steps) == [["python3.12", "-X", "dev", "default.py"]]


def test_go_without_module_gets_throwaway_module(tmp_path):
    steps = GoRunner().plan(_snippet("go"), workdir=tmp_path, entry=tmp_path / "main.go")

    assert _argvs(steps) == [
        ["go", "mod", "init", "snippet"],
        ["go", "mod", "tidy"],
        ["go", "run", "."],
    ]
    assert [step.label for step in steps] == ["go mod init", "go mod tidy", "run"]


def test_go_with_module_runs_entry_package(tmp_path):
    (tmp_path / "go.mod").write_text("module example\n", encoding="utf-8")
    (tmp_path / "cmd").mkdir()

    steps = GoRunner().plan(
        _snippet("go", entrypoint="build_tool"),
        workdir=tmp_path,
        entry=tmp_path / "cmd" / "main.go",
    )

    assert _argvs(steps) == [["go", "run", "./cmd"]]


def test_java_single_file_uses_source_launcher(tmp_path):
    steps = JavaRunner().plan(_snippet("java"), workdir=tmp_path, entry=tmp_path / "Default.java")

    assert _argvs(steps) == [["java", "Default.java"]]


def test_java_directory_compiles_then_runs_main_class(tmp_path):
    body = "package com.example;\n\npublic class Main {}\n"
    (tmp_path / "Main.java").write_text(body, encoding="utf-8")
    (tmp_path / "Helper.java").write_text("package com.example;\n", encoding="utf-8")
    snippet = _snippet("java", body, bundle_root=tmp_path, entrypoint="compile_run")

    steps = JavaRunner().plan(snippet, workdir=tmp_path, entry=tmp_path / "Main.java")

    assert _argvs(steps) == [
        ["javac", "-d", "classes", "Helper.java", "Main.java"],
        ["java", "-cp", "classes", "com.example.Main"],
    ]


def test_java_build_tools(tmp_path):
    maven = tmp_path / "maven"
    gradle = tmp_path / "gradle"
    maven.mkdir()
    gradle.mkdir()
    (maven / "pom.xml").write_text("<project/>\n", encoding="utf-8")
    (gradle / "build.gradle.kts").write_text("plugins {}\n", encoding="utf-8")

    maven_steps = JavaRunner().plan(
        _snippet("java", bundle_root=maven, entrypoint="build_tool"),
        workdir=maven,
        entry=maven / "Main.java",
    )
    gradle_steps = JavaRunner().plan(
        _snippet("java", bundle_root=gradle, entrypoint="build_tool"),
        workdir=gradle,
        entry=gradle / "Main.java",
    )

    assert _argvs(maven_steps) == [["mvn", "-q", "-B", "compile", "exec:java"]]
    assert _argvs(gradle_steps) == [["gradle", "-q", "run"]]


def test_main_class_without_package():
    assert main_class("public class Main {}\n", Path("Main.java")) == "Main"


def test_typescript_installs_dependencies_for_package_bundles(tmp_path):
    (tmp_path / "package.json").write_text("{}\n", encoding="utf-8")
    snippet = _snippet("typescript", bundle_root=tmp_path, entrypoint="build_tool")

    steps = TypeScriptRunner().plan(snippet, workdir=tmp_path, entry=tmp_path / "index.ts")

    assert _argvs(steps) == [
        ["npm", "install", "--no-audit", "--no-fund", "--silent"],
        ["tsx", "index.ts"],
    ]


def test_typescript_single_file(tmp_path):
    steps = TypeScriptRunner().plan(
        _snippet("typescript"), workdir=tmp_path, entry=tmp_path / "default.ts"
    )

    assert _argvs(steps) == [["tsx", "default.ts"]]


@pytest.mark.skipif(os.name != "posix", reason="executable stubs need POSIX permissions")
def test_typescript_without_tsx_is_toolchain_error_even_when_npx_exists(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    npx = bin_dir / "npx"
    npx.write_text("#!/bin/sh\necho 'npm ERR! code ECONNREFUSED' >&2\nexit 1\n", encoding="utf-8")
    npx.chmod(0o755)
    monkeypatch.setenv("PATH", str(bin_dir))
    context = ExecutionContext(workspace_root=tmp_path / "work", env_passthrough=("PATH",))

    result = TypeScriptRunner().execute(
        _snippet("typescript", "console.log('hi')\n"), {}, 30, context=context
    )

    assert result.status == "toolchain_error"
    assert result.message == "Toolchain not found: tsx"
