"""
Integration tests against a real git binary.

Builds a small repository, renders it, and checks the produced site.
Skipped when git is not installed.
"""

import os
import shutil
import subprocess

import pytest

from gitsite.config import validate_source
from gitsite.domain import Project, TaskKind, TaskStatus
from gitsite.services import SiteBuilder

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

GIT_ENV = {
    'GIT_AUTHOR_NAME': "Jane Doe",
    'GIT_AUTHOR_EMAIL': "jane@example.com",
    'GIT_AUTHOR_DATE': "2024-01-02T03:04:05+00:00",
    'GIT_COMMITTER_NAME': "Jane Doe",
    'GIT_COMMITTER_EMAIL': "jane@example.com",
    'GIT_COMMITTER_DATE': "2024-01-02T03:04:05+00:00",
    'GIT_CONFIG_NOSYSTEM': "1",
}


def git(repo, *args) -> str:
    env = {**os.environ, **GIT_ENV}
    result = subprocess.run(["git", *args], cwd=repo, env=env, capture_output=True, text=True, check=True)
    return result.stdout.strip()


@pytest.fixture
def repo(tmp_path):
    """main: initial -> second (edits README, adds a binary); feature/x adds a note on top."""
    path = tmp_path / "source"
    path.mkdir()
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")

    (path / "README.md").write_text("hello\n")
    git(path, "add", "README.md")
    git(path, "commit", "-q", "-m", "Initial commit")

    (path / "README.md").write_text("hello world\n")
    (path / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR")
    git(path, "add", "README.md", "logo.png")
    git(path, "commit", "-q", "-m", "Second commit", "-m", "With a body.")

    git(path, "checkout", "-q", "-b", "feature/x")
    (path / "docs").mkdir()
    (path / "docs" / "notes.txt").write_text("remember the milk")
    git(path, "add", "docs/notes.txt")
    git(path, "commit", "-q", "-m", "Add notes")
    git(path, "checkout", "-q", "main")
    return path


def build(repo, tmp_path, **kwargs):
    project = Project(name="Demo", source=str(repo), output=str(tmp_path / "site"))
    return SiteBuilder(project, work_root=tmp_path / "cache", **kwargs).build()


def snapshot(root):
    files = {}
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            path = os.path.join(dirpath, name)
            with open(path, 'rb') as f:
                files[os.path.relpath(path, root)] = f.read()
    return files


class TestRealRepository:
    def test_end_to_end(self, repo, tmp_path):
        summary = build(repo, tmp_path)
        site = tmp_path / "site"
        initial, second = git(repo, "rev-list", "--reverse", "main").split()
        feature = git(repo, "rev-parse", "feature/x")

        assert summary.success, summary.errors
        assert summary.count(TaskKind.BRANCH, TaskStatus.SUCCESS) == 2
        assert (site / "index.html").exists()
        assert (site / "branch" / "main" / "index.html").exists()
        assert (site / "branch" / "feature" / "x" / "index.html").exists()
        for commit in (initial, second, feature):
            assert (site / "commit" / commit / "index.html").exists()
        assert (site / "commit" / second / f"diff-to-{initial}.html").exists()
        assert (site / "commit" / feature / "docs" / "notes.txt.html").exists()

    def test_bare_repository_source(self, repo, tmp_path):
        bare = tmp_path / "project.git"
        git(tmp_path, "clone", "-q", "--bare", str(repo), str(bare))
        source = validate_source(str(bare))

        project = Project(name="Demo", source=source, output=str(tmp_path / "site"))
        summary = SiteBuilder(project, work_root=tmp_path / "cache").build()

        assert summary.success, summary.errors
        assert (tmp_path / "site" / "branch" / "main" / "index.html").exists()

    def test_hunk_links_point_at_existing_pages(self, repo, tmp_path):
        build(repo, tmp_path)
        site = tmp_path / "site"
        initial, second = git(repo, "rev-list", "--reverse", "main").split()
        diff = (site / "commit" / second / f"diff-to-{initial}.html").read_text()

        assert f'href="../../commit/{initial}/README.md.html#L1"' in diff
        assert f'href="../../commit/{second}/README.md.html#L1"' in diff
        assert (site / "commit" / initial / "README.md.html").exists()
        assert '<a id="README.md" href="#README.md">' in diff

    def test_binary_and_text_objects(self, repo, tmp_path):
        build(repo, tmp_path)
        site = tmp_path / "site"
        second = git(repo, "rev-parse", "main")
        logo = git(repo, "rev-parse", "main:logo.png")

        assert "Binary content" in (site / "commit" / second / "logo.png.html").read_text()
        assert (site / "object" / logo[:2] / logo).read_bytes().startswith(b"\x89PNG")
        notes = (site / "commit" / git(repo, "rev-parse", "feature/x") / "docs" / "notes.txt.html").read_text()
        assert 'id="L1"' in notes

    def test_rerun_is_idempotent(self, repo, tmp_path):
        build(repo, tmp_path)
        first = snapshot(tmp_path / "site")

        summary = build(repo, tmp_path)

        assert summary.success, summary.errors
        assert snapshot(tmp_path / "site") == first
        assert list((tmp_path / "cache").iterdir()) == []

    def test_whitelist_and_force(self, repo, tmp_path):
        build(repo, tmp_path)
        feature = git(repo, "rev-parse", "feature/x")

        project = Project(name="Demo", source=str(repo), output=str(tmp_path / "site"), branches=("main",))
        summary = SiteBuilder(project, work_root=tmp_path / "cache", force=True).build()

        site = tmp_path / "site"
        assert summary.success
        assert not (site / "commit" / feature).exists()
        assert (site / "branch" / "feature" / "x" / "index.html").exists()
