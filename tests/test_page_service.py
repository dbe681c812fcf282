"""Tests for page rendering."""

import dataclasses
from datetime import datetime, timezone

import pytest

from gitsite.domain import Author, Branch, Commit, Diff, GraphRow, ObjectView, Overview, TreeObject
from gitsite.exit_codes import ConfigError
from gitsite.services.page_service import (
    PageKind,
    PageRenderer,
    RenderError,
    base_path,
    make_title,
)

HEAD = "c" * 40
PARENT = "b" * 40
BLOB = "d" * 40


@pytest.fixture
def commit():
    return Commit(
        hash=HEAD,
        abbr=HEAD[:7],
        parents=(PARENT,),
        author=Author("Jane <Doe>", "jane@example.com"),
        date=datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc),
        subject="Fix <script> injection",
        body="Fix <script> injection\n\nDetails.",
        tree=(TreeObject(BLOB, "src/app.py"),),
        history=(Overview(body=" src/app.py | 2 +-", hash=HEAD, parent=PARENT),),
    )


@pytest.fixture
def renderer():
    return PageRenderer("Demo")


class TestHelpers:
    def test_base_path(self):
        assert base_path(0) == "./"
        assert base_path(2) == "../../"

    def test_make_title_skips_empty_parts(self):
        assert make_title("Demo", "main", None, "abc1234") == "Demo: main: abc1234"

    def test_template_names(self):
        assert PageKind.DIFF.template_name == "diff.html"


class TestPageRenderer:
    def test_index_page(self, renderer, commit):
        html = renderer.index_page([Branch("main", (commit,)), Branch("empty")], "https://host/demo.git")
        text = html.decode("utf-8")

        assert "<title>Demo</title>" in text
        assert 'href="./branch/main/index.html"' in text
        assert f'href="./commit/{HEAD}/index.html"' in text
        assert "git clone https://host/demo.git" in text
        assert 'href="./branch/empty/index.html"' in text

    def test_branch_page_base_follows_name_depth(self, renderer, commit):
        text = renderer.branch_page(Branch("feature/login", (commit,))).decode("utf-8")

        assert "<title>Demo: feature/login</title>" in text
        assert 'href="../../../index.html"' in text
        assert f'href="../../../commit/{HEAD}/index.html"' in text

    def test_branch_page_escapes(self, renderer, commit):
        text = renderer.branch_page(Branch("main", (commit,))).decode("utf-8")
        assert "Fix &lt;script&gt; injection" in text
        assert "<script>" not in text

    def test_branch_page_graph(self, renderer, commit):
        branch = Branch("main", (commit,), graph=(GraphRow("*", HEAD), GraphRow("|\\")))
        text = renderer.branch_page(branch).decode("utf-8")
        assert "Graph" in text
        assert f'href="../../commit/{HEAD}/index.html"><code>{HEAD[:7]}</code>' in text

    def test_commit_page(self, renderer, commit):
        text = renderer.commit_page(Branch("main", (commit,)), commit).decode("utf-8")

        assert f"<title>Demo: main: {HEAD[:7]}</title>" in text
        assert f'href="../../commit/{HEAD}/diff-to-{PARENT}.html">diff</a>' in text
        assert f'href="../../commit/{HEAD}/diff-to-{PARENT}.html#src/app.py">2</a>' in text
        assert f'href="../../commit/{HEAD}/src/app.py.html">src/app.py</a>' in text
        assert "Jane &lt;Doe&gt;" in text

    def test_commit_page_marks_root_and_merge(self, renderer, commit):
        root = dataclasses.replace(commit, parents=(), history=())
        merge = dataclasses.replace(commit, parents=(PARENT, BLOB))

        assert "Root commit" in renderer.commit_page(Branch("main"), root).decode("utf-8")
        assert "Merge of 2 parents" in renderer.commit_page(Branch("main"), merge).decode("utf-8")
        assert "Root commit" not in renderer.commit_page(Branch("main"), commit).decode("utf-8")

    def test_diff_page(self, renderer, commit):
        body = (
            "diff --git a/src/app.py b/src/app.py\n"
            "--- a/src/app.py\n"
            "+++ b/src/app.py\n"
            "@@ -1 +1 @@\n"
            "-x = '<'\n"
            "+x = '>'\n"
        )
        text = renderer.diff_page(Branch("main"), Diff(body, commit, PARENT)).decode("utf-8")

        assert f"<title>Demo: main: {HEAD[:7]}: {PARENT[:7]}</title>" in text
        assert '<a id="src/app.py" href="#src/app.py">' in text
        assert f'href="../../commit/{PARENT}/src/app.py.html#L1"' in text
        assert "<del>-x = &#39;&lt;&#39;</del>" in text

    def test_text_object_page(self, renderer):
        view = ObjectView(hash=BLOB, path="src/app.py", body="a = 1\nb = 2", lines=(1, 2))
        text = renderer.object_page(view).decode("utf-8")

        assert f"<title>Demo: {BLOB[:7]}</title>" in text
        assert '<tr id="L2"><td><a href="#L2">2</a></td><td>b = 2</td></tr>' in text
        assert 'href="../' not in text

    def test_object_page_is_path_independent(self, renderer):
        first = renderer.object_page(ObjectView(hash=BLOB, path="a.txt", body="x\n", lines=(1,)))
        second = renderer.object_page(ObjectView(hash=BLOB, path="b/c.txt", body="x\n", lines=(1,)))
        assert first == second

    def test_binary_object_page(self, renderer):
        text = renderer.object_page(ObjectView(hash=BLOB, path="logo.png", binary=True)).decode("utf-8")
        assert "Binary content" in text
        assert f"object/dd/{BLOB}" in text
        assert 'id="L1"' not in text


class TestTemplateOverrides:
    def test_single_file_used_for_every_kind(self, tmp_path, commit):
        template = tmp_path / "one.html"
        template.write_text("{{ kind }}|{{ base }}|{{ title }}")
        renderer = PageRenderer("Demo", str(template))

        assert renderer.index_page([]) == b"index|./|Demo"
        assert renderer.commit_page(Branch("main"), commit) == f"commit|../../|Demo: main: {HEAD[:7]}".encode()

    def test_directory_overrides_named_templates(self, tmp_path, renderer):
        (tmp_path / "index.html").write_text("custom {{ branches|length }}")
        custom = PageRenderer("Demo", str(tmp_path))

        assert custom.index_page([Branch("main")]) == b"custom 1"
        assert b"<!DOCTYPE html>" in custom.branch_page(Branch("main"))

    def test_missing_override(self, tmp_path):
        with pytest.raises(ConfigError):
            PageRenderer("Demo", str(tmp_path / "nope"))

    def test_template_error_raises_render_error(self, tmp_path):
        template = tmp_path / "broken.html"
        template.write_text("{{ missing.attribute.chain() }}")

        with pytest.raises(RenderError):
            PageRenderer("Demo", str(template)).index_page([])
