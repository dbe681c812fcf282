"""
Shared fixtures for gitsite tests.

FakeGitClient answers every gateway call from canned git output, so
extraction, rendering and generation run without a git binary.

The canned repository:

    main:     C -> B -> A
    develop:  D -> B -> A

A adds README.md; B edits README.md and adds logo.png (binary);
C edits README.md again; D adds notes.txt.
"""

import threading
from typing import Dict, List, Set, Tuple

import pytest

from gitsite.infra import GitClient, GitCommandError
from gitsite.services.history_service import SEP

A = "1" * 40
B = "2" * 40
C = "3" * 40
D = "4" * 40

README_V1 = "a1" * 20
README_V2 = "a2" * 20
README_V3 = "a3" * 20
LOGO = "b0" * 20
NOTES = "c0" * 20

DATE = "Mon, 2 Jan 2006 15:04:05 -0700"


def log_line(commit: str, parents: str, subject: str, date: str = DATE) -> str:
    return SEP.join([commit, parents, subject, "Jane Doe", "jane@example.com", date, commit[:7]])


def tree_listing(*entries: Tuple[str, str]) -> str:
    return "".join(f"100644 blob {obj}\t{path}\0" for obj, path in entries)


def readme_patch(parent_blob: str, blob: str, old: str, new: str) -> str:
    return (
        "diff --git a/README.md b/README.md\n"
        f"index {parent_blob[:7]}..{blob[:7]} 100644\n"
        "--- a/README.md\n"
        "+++ b/README.md\n"
        "@@ -1 +1 @@\n"
        f"-{old}\n"
        f"+{new}\n"
    )


class FakeGitClient(GitClient):
    """GitClient double backed by dictionaries of canned output."""

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self.calls: List[Tuple[str, ...]] = []
        self.failures: Set[Tuple[str, ...]] = set()

        self.branch_listing = (
            "refs/heads/main\n"
            "refs/remotes/origin/HEAD\n"
            "refs/remotes/origin/develop\n"
            "refs/remotes/origin/main\n"
        )
        self.logs: Dict[str, str] = {
            "main": "\n".join([
                log_line(C, B, "Greet the world"),
                log_line(B, A, "Add logo"),
                log_line(A, "", "Initial commit"),
            ]) + "\n",
            "develop": "\n".join([
                log_line(D, B, "Add notes"),
                log_line(B, A, "Add logo"),
                log_line(A, "", "Initial commit"),
            ]) + "\n",
        }
        self.graphs: Dict[str, str] = {
            "main": f"* {C}\n* {B}\n* {A}\n",
        }
        self.bodies: Dict[str, str] = {
            A: "Initial commit\n",
            B: "Add logo\n\nShips the project logo.\n",
            C: "Greet the world\n",
            D: "Add notes\n",
        }
        self.trees: Dict[str, str] = {
            A: tree_listing((README_V1, "README.md")),
            B: tree_listing((README_V2, "README.md"), (LOGO, "logo.png")),
            C: tree_listing((README_V3, "README.md"), (LOGO, "logo.png")),
            D: tree_listing((README_V2, "README.md"), (LOGO, "logo.png"), (NOTES, "docs/notes.txt")),
        }
        self.stats: Dict[Tuple[str, str], str] = {
            (A, B): (
                " README.md | 2 +-\n"
                " logo.png  | Bin 0 -> 8 bytes\n"
                " 2 files changed, 1 insertion(+), 1 deletion(-)\n"
            ),
            (B, C): (
                " README.md | 2 +-\n"
                " 1 file changed, 1 insertion(+), 1 deletion(-)\n"
            ),
            (B, D): (
                " docs/notes.txt | 1 +\n"
                " 1 file changed, 1 insertion(+)\n"
            ),
        }
        self.patches: Dict[Tuple[str, str], str] = {
            (A, B): readme_patch(README_V1, README_V2, "hello", "hello there"),
            (B, C): readme_patch(README_V2, README_V3, "hello there", "hello world"),
            (B, D): (
                "diff --git a/docs/notes.txt b/docs/notes.txt\n"
                "new file mode 100644\n"
                f"index 0000000..{NOTES[:7]}\n"
                "--- /dev/null\n"
                "+++ b/docs/notes.txt\n"
                "@@ -0,0 +1 @@\n"
                "+remember the milk\n"
            ),
        }
        self.blobs: Dict[str, bytes] = {
            README_V1: b"hello\n",
            README_V2: b"hello there\n",
            README_V3: b"hello world\n",
            LOGO: b"\x89PNG\r\n\x1a\n",
            NOTES: b"remember the milk\n",
        }

    def _record(self, *call: str) -> None:
        with self._lock:
            self.calls.append(call)
        if call in self.failures or call[:1] in self.failures:
            raise GitCommandError(["git", *call], 128, "fatal: simulated failure")

    def count(self, name: str, *args: str) -> int:
        with self._lock:
            return sum(1 for c in self.calls if c[0] == name and c[1:1 + len(args)] == args)

    def _lookup(self, table: Dict, key, call: Tuple[str, ...]):
        if key not in table:
            raise GitCommandError(["git", *call], 128, f"fatal: bad revision {key}")
        return table[key]

    def _branch(self, ref: str) -> str:
        prefix = f"refs/remotes/{self.remote}/"
        return ref[len(prefix):] if ref.startswith(prefix) else ref

    def clone(self, source: str, path: str) -> None:
        self._record("clone", source)

    def fetch_branch(self, path: str, branch: str) -> None:
        self._record("fetch", branch)

    def checkout(self, path: str, ref: str) -> None:
        self._record("checkout", ref)

    def list_branches(self, path: str) -> str:
        self._record("branch")
        return self.branch_listing

    def log(self, path: str, ref: str, fmt: str) -> str:
        branch = self._branch(ref)
        self._record("log", branch)
        return self._lookup(self.logs, branch, ("log", ref))

    def log_graph(self, path: str, ref: str) -> str:
        branch = self._branch(ref)
        self._record("log-graph", branch)
        return self._lookup(self.graphs, branch, ("log", "--graph", ref))

    def show_body(self, path: str, commit: str) -> str:
        self._record("show-body", commit)
        return self._lookup(self.bodies, commit, ("show", commit))

    def diff_stat(self, path: str, parent: str, commit: str) -> str:
        self._record("diff-stat", parent, commit)
        return self._lookup(self.stats, (parent, commit), ("diff", "--stat", f"{parent}..{commit}"))

    def diff_patch(self, path: str, parent: str, commit: str) -> str:
        self._record("diff-patch", parent, commit)
        return self._lookup(self.patches, (parent, commit), ("diff", "-p", f"{parent}..{commit}"))

    def ls_tree(self, path: str, commit: str) -> str:
        self._record("ls-tree", commit)
        return self._lookup(self.trees, commit, ("ls-tree", commit))

    def cat_blob(self, path: str, obj: str) -> bytes:
        self._record("cat-blob", obj)
        return self._lookup(self.blobs, obj, ("cat-file", "blob", obj))

    def show_blob(self, path: str, obj: str) -> str:
        self._record("show-blob", obj)
        return self._lookup(self.blobs, obj, ("show", obj)).decode("utf-8", errors="replace")


@pytest.fixture
def fake_git() -> FakeGitClient:
    return FakeGitClient()


@pytest.fixture
def work_root(tmp_path):
    """Directory for temporary working copies, kept inside the test's tmp_path."""
    path = tmp_path / "cache"
    path.mkdir()
    return path

