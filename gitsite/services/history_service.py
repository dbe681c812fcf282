"""
History extraction for gitsite.

Parses git's textual output into the commit/tree/diff model:
- BinaryTypes: shared extension -> binary classification
- TreeDiffResolver: per-commit file tree, diff-stat and diff body
- CommitGraphExtractor: per-branch ordered commit records

Extraction is lossy on error by commit: a commit whose date, message
body or tree cannot be resolved is logged and dropped, its siblings are
kept.
"""

import dataclasses
import re
import threading
from datetime import datetime
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple
import logging

from ..annotate import stat_path
from ..domain import Author, Branch, Commit, GraphRow, Overview, TreeObject
from ..infra import GitClient, GitCommandError

logger = logging.getLogger(__name__)

# Joins log fields. Commit content containing this exact literal breaks
# parsing of that line; no escaping is attempted.
SEP = "0f5c8a52-5d0e-4b8e-9a37-6d1c2e7b41a9"

# full hash, parents, subject, author name, author email, author date, abbreviated hash
LOG_FIELDS = ("%H", "%P", "%s", "%aN", "%aE", "%aD", "%h")
LOG_FORMAT = SEP.join(LOG_FIELDS)

# RFC 2822 as printed by %aD, e.g. "Mon, 2 Jan 2006 15:04:05 -0700"
DATE_FORMAT = "%a, %d %b %Y %H:%M:%S %z"

BINARY_MARKER = "Bin"

GRAPH_ROW = re.compile(r'^(?P<glyphs>[^0-9a-f]*?)\s*(?P<hash>[0-9a-f]{7,64})?\s*$')


class BinaryTypes:
    """
    Thread-safe map of file extension to "git reports this as binary".

    Written by diff-stat parsing, read by object rendering. Unknown
    extensions are not binary; once an extension is seen as binary it
    stays binary.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._types: Dict[str, bool] = {}

    def record(self, ext: str, binary: bool) -> None:
        if not ext:
            return
        with self._lock:
            self._types[ext] = self._types.get(ext, False) or binary

    def is_binary(self, ext: str) -> bool:
        with self._lock:
            return self._types.get(ext, False)

    def snapshot(self) -> Dict[str, bool]:
        with self._lock:
            return dict(self._types)


def parse_diff_stat(output: str, types: Optional[BinaryTypes] = None) -> str:
    """
    Trim a ``git diff --stat`` listing, classifying extensions on the way.

    Each ``path | stats`` line records whether the path's extension is
    binary (stats starting with ``Bin``).
    """
    results = []

    for line in output.rstrip("\n").split("\n"):
        name, bar, stats = line.partition("|")
        if bar and types is not None:
            ext = PurePosixPath(stat_path(name)).suffix
            types.record(ext, stats.strip().startswith(BINARY_MARKER))

        results.append(line.rstrip())

    return "\n".join(results)


def parse_tree(output: str) -> List[TreeObject]:
    """
    Blobs from ``git ls-tree -r -z``.

    Entries are ``<mode> <type> <hash>\\t<path>``; submodules and other
    non-blob entries are skipped.
    """
    results = []

    for entry in output.split("\0"):
        if not entry:
            continue
        meta, tab, path = entry.partition("\t")
        parts = meta.split()
        if not tab or len(parts) != 3:
            logger.debug(f"Skipping malformed tree entry: {entry!r}")
            continue
        _, kind, obj = parts
        if kind != "blob":
            continue
        results.append(TreeObject(hash=obj, path=path))

    return results


def parse_log_line(line: str) -> Commit:
    """
    One line of the fixed-format log as a Commit without body or tree.

    Raises:
        ValueError: Wrong field count or unparsable author date
    """
    data = line.strip().split(SEP)
    if len(data) != len(LOG_FIELDS):
        raise ValueError(f"expected {len(LOG_FIELDS)} fields, got {len(data)}")

    full, parents, subject, name, email, date, abbr = data

    return Commit(
        hash=full,
        abbr=abbr,
        parents=tuple(parents.split()),
        author=Author(name=name, email=email),
        date=datetime.strptime(date, DATE_FORMAT),
        subject=subject,
    )


def parse_graph(output: str) -> Tuple[GraphRow, ...]:
    """Rows of ``git log --graph --format=%H``."""
    rows = []
    for line in output.rstrip("\n").split("\n"):
        if not line:
            continue
        match = GRAPH_ROW.match(line)
        if match and match.group('hash'):
            rows.append(GraphRow(glyphs=match.group('glyphs').rstrip(), hash=match.group('hash')))
        else:
            rows.append(GraphRow(glyphs=line.rstrip()))
    return tuple(rows)


class TreeDiffResolver:
    """
    Resolves file trees and per-parent diffs of single commits.

    All calls are read-only against the working copy; diff-stat parsing
    additionally feeds the shared BinaryTypes map.
    """

    def __init__(
        self,
        path: str,
        git_client: Optional[GitClient] = None,
        types: Optional[BinaryTypes] = None
    ):
        self.path = path
        self.git = git_client or GitClient()
        self.types = types if types is not None else BinaryTypes()

    def tree(self, commit: str) -> List[TreeObject]:
        """File tree of ``commit``, in listing order."""
        return parse_tree(self.git.ls_tree(self.path, commit))

    def diff_overview(self, commit: str, parent: str) -> str:
        """Diff-stat text of ``parent..commit``."""
        return parse_diff_stat(self.git.diff_stat(self.path, parent, commit), self.types)

    def diff_body(self, commit: str, parent: str) -> str:
        """Unified diff text of ``parent..commit``."""
        return self.git.diff_patch(self.path, parent, commit)


class CommitGraphExtractor:
    """
    Builds Branch records from a working copy.

    Commits reachable from several branches are resolved once and
    shared.

    Example:
        extractor = CommitGraphExtractor("/tmp/work", GitClient(), resolver)
        branch = extractor.extract("main")
        for commit in branch.commits:
            print(commit.abbr, commit.subject)
    """

    def __init__(
        self,
        path: str,
        git_client: Optional[GitClient] = None,
        resolver: Optional[TreeDiffResolver] = None
    ):
        self.path = path
        self.git = git_client or GitClient()
        self.resolver = resolver or TreeDiffResolver(path, self.git)
        self._lock = threading.Lock()
        self._commits: Dict[str, Commit] = {}

    def extract(self, branch: str, graph: bool = False) -> Branch:
        """
        Ordered commits of ``branch``, newest first.

        Raises:
            GitCommandError: If the branch log itself cannot be read
        """
        ref = self.git.remote_ref(branch)
        output = self.git.log(self.path, ref, LOG_FORMAT)

        commits = []
        lines = [line for line in output.split("\n") if line.strip()]

        for line in lines:
            commit = self._commit(line)
            if commit is not None:
                commits.append(commit)

        if len(commits) != len(lines):
            logger.warning(f"Branch {branch}: dropped {len(lines) - len(commits)} of {len(lines)} commits")

        rows: Tuple[GraphRow, ...] = ()
        if graph:
            try:
                rows = parse_graph(self.git.log_graph(self.path, ref))
            except GitCommandError as e:
                logger.warning(f"Unable to read commit graph of {branch}: {e}")

        return Branch(name=branch, commits=tuple(commits), graph=rows)

    def _commit(self, line: str) -> Optional[Commit]:
        try:
            entry = parse_log_line(line)
        except ValueError as e:
            logger.warning(f"Unable to parse commit line: {e}")
            return None

        with self._lock:
            cached = self._commits.get(entry.hash)
        if cached is not None:
            return cached

        commit = self._resolve(entry)
        if commit is not None:
            with self._lock:
                commit = self._commits.setdefault(commit.hash, commit)
        return commit

    def _resolve(self, entry: Commit) -> Optional[Commit]:
        """Attach body, tree and per-parent diff-stats to a parsed log entry."""
        history = []
        for parent in entry.parents:
            try:
                body = self.resolver.diff_overview(entry.hash, parent)
            except GitCommandError as e:
                logger.warning(f"Unable to diffstat {entry.abbr} against parent {parent}: {e}")
                continue
            history.append(Overview(body=body, hash=entry.hash, parent=parent))

        try:
            body = self.git.show_body(self.path, entry.hash).rstrip("\n")
        except GitCommandError as e:
            logger.warning(f"Unable to read commit body of {entry.abbr}: {e}")
            return None

        try:
            tree = self.resolver.tree(entry.hash)
        except GitCommandError as e:
            logger.warning(f"Unable to read commit tree of {entry.abbr}: {e}")
            return None

        return dataclasses.replace(entry, body=body, tree=tuple(tree), history=tuple(history))
