from snippet_harness.runtime import build_snippet_workdir, remove_workdir, resolve_workspace_root


def test_configured_workspace_root_wins(tmp_path, monkeypatch):
    monkeypatch.setenv("SNIPPET_HARNESS_WORKDIR", str(tmp_path / "from_env"))

    root = resolve_workspace_root(tmp_path / "configured")

    assert root == tmp_path / "configured"
    assert root.is_dir()


def test_env_var_used_when_nothing_configured(tmp_path, monkeypatch):
    monkeypatch.setenv("SNIPPET_HARNESS_WORKDIR", str(tmp_path / "from_env"))

    assert resolve_workspace_root() == tmp_path / "from_env"


def test_falls_back_to_local_dir_when_candidate_unusable(tmp_path, monkeypatch):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("nope", encoding="utf-8")
    monkeypatch.delenv("SNIPPET_HARNESS_WORKDIR", raising=False)
    monkeypatch.chdir(tmp_path)

    root = resolve_workspace_root(blocker)

    assert root == tmp_path / ".snippet-work"
    assert root.is_dir()


def test_workdirs_are_unique_and_sanitized(tmp_path):
    first = build_snippet_workdir("go/embed-v2-post/default", workspace_root=tmp_path)
    second = build_snippet_workdir("go/embed-v2-post/default", workspace_root=tmp_path)

    assert first != second
    assert first.parent == tmp_path
    assert first.name.startswith("go_embed-v2-post_default-")


def test_remove_workdir_tolerates_missing_directory(tmp_path):
    workdir = build_snippet_workdir("python/a/b", workspace_root=tmp_path)
    (workdir / "main.py").write_text("print(1)\n", encoding="utf-8")

    remove_workdir(workdir)
    remove_workdir(workdir)

    assert not workdir.exists()
