import json
import os
import sys

import pytest
import snippet_run

pytestmark = pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX-only")


def _tree(root):
    files = {
        "python/hello/default.py": "print('hello')\n",
        "python/broken/default.py": "import sys\nsys.exit(1)\n",
        "swift/hello/default.swift": "print(\"hi\")\n",
    }
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def _args(tmp_path, *extra):
    return [
        "--root",
        str(_tree(tmp_path / "snippets")),
        "--set",
        f"runners.python.command={json.dumps([sys.executable])}",
        "--set",
        f"execution.workspace_root={json.dumps(str(tmp_path / 'work'))}",
        "--language",
        "python",
        "--language",
        "swift",
        *extra,
    ]


def test_cli_writes_report_and_exits_zero_despite_failures(tmp_path, capsys):
    report_path = tmp_path / "out" / "report.json"

    exit_code = snippet_run.main(_args(tmp_path, "--report", str(report_path), "--workers", "2"))

    assert exit_code == 0
    payload = json.loads(report_path.read_text(encoding="utf-8"))
    statuses = {item["snippet_id"]: item["status"] for item in payload["results"]}
    assert statuses == {
        "python/broken/default": "fail",
        "python/hello/default": "pass",
        "swift/hello/default": "skipped",
    }
    assert "3 snippets:" in capsys.readouterr().err


def test_cli_prints_json_to_stdout(tmp_path, capsys):
    exit_code = snippet_run.main(_args(tmp_path))

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)["summary"]["total"] == 3


def test_cli_annotations_leave_only_workflow_commands_on_stdout(tmp_path, capsys):
    report_path = tmp_path / "report.json"

    exit_code = snippet_run.main(
        _args(tmp_path, "--report", str(report_path), "--set", "report.annotations=true")
    )

    lines = capsys.readouterr().out.splitlines()
    assert exit_code == 0
    assert lines and all(line.startswith("::warning ") for line in lines)
    assert any("python/broken/default" in line for line in lines)
    assert json.loads(report_path.read_text(encoding="utf-8"))["summary"]["total"] == 3


def test_cli_annotations_without_report_path_is_a_config_error(tmp_path, capsys):
    exit_code = snippet_run.main(_args(tmp_path, "--set", "report.annotations=true"))

    assert exit_code == 2
    assert capsys.readouterr().out == ""


def test_cli_fail_on_blocks(tmp_path):
    exit_code = snippet_run.main(_args(tmp_path, "--set", "report.fail_on=[fail]"))

    assert exit_code == 3


def test_cli_config_error_exits_two(tmp_path):
    config_path = tmp_path / "harness.yaml"
    config_path.write_text("execution:\n  workers: 0\n", encoding="utf-8")

    assert snippet_run.main(["--config", str(config_path)]) == 2


def test_cli_missing_root_exits_one(tmp_path, capsys):
    exit_code = snippet_run.main(
        [
            "--root",
            str(tmp_path / "absent"),
            "--set",
            f"execution.workspace_root={json.dumps(str(tmp_path / 'work'))}",
        ]
    )

    assert exit_code == 1
    assert json.loads(capsys.readouterr().out)["fault"]


def test_build_registry_covers_every_language():
    config = snippet_run.load_harness_config(
        overrides={"runners.go": {"command": ["/opt/go/bin/go"]}}
    )

    registry = snippet_run.build_registry(config)

    assert registry.get("curl") is not None
    assert registry.get("go").command == ("/opt/go/bin/go",)
    assert {info.key for info in registry.list()} == {
        "shell.bash",
        "python.cpython",
        "typescript.tsx",
        "go.toolchain",
        "java.jdk",
    }
