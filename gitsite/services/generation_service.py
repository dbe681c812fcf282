"""
Site generation for gitsite.

Fans page and object work out over a thread pool and waits for every
dispatched task before returning. A failing task is logged and
reported in the summary; it never stops the run.

Output layout under the site root:
    index.html
    branch/<name>/index.html
    commit/<hash>/index.html
    commit/<hash>/diff-to-<parent>.html
    commit/<hash>/<path>.html        (hard link into object/)
    object/<hh>/<hash>               (raw content)
    object/<hh>/<hash>.html          (rendering)
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from ..annotate import diff_page_name, line_numbers
from ..domain import (
    Branch,
    Commit,
    Diff,
    GenerationSummary,
    ObjectView,
    TaskKind,
    TaskResult,
    TreeObject,
)
from ..exit_codes import SetupError
from ..infra import GitClient, GitCommandError, LinkOutcome, ObjectStore, write_atomic
from .history_service import BinaryTypes, CommitGraphExtractor, TreeDiffResolver
from .page_service import PageRenderer, RenderError

logger = logging.getLogger(__name__)

BRANCH_DIR = "branch"
COMMIT_DIR = "commit"
OBJECT_DIR = "object"
SITE_DIRS = (BRANCH_DIR, COMMIT_DIR, OBJECT_DIR)


@dataclass(frozen=True)
class SiteLayout:
    """File locations of every artifact under the site root."""
    root: Path

    @property
    def index(self) -> Path:
        return self.root / "index.html"

    @property
    def object_root(self) -> Path:
        return self.root / OBJECT_DIR

    def branch_page(self, name: str) -> Path:
        return self.root / BRANCH_DIR / name / "index.html"

    def commit_dir(self, commit: str) -> Path:
        return self.root / COMMIT_DIR / commit

    def commit_page(self, commit: str) -> Path:
        return self.commit_dir(commit) / "index.html"

    def diff_page(self, commit: str, parent: str) -> Path:
        return self.commit_dir(commit) / diff_page_name(parent)

    def object_link(self, commit: str, path: str) -> Path:
        return self.commit_dir(commit) / f"{path}.html"


class GenerationOrchestrator:
    """
    Drives generation of the whole site from resolved branch names.

    Branch tips are refreshed from upstream one at a time, then each
    branch's commits are extracted in the pool. After that it renders
    the branch page and, for each commit (once, even when several
    branches hold it), the commit page, one diff page per parent and one
    stored, linked object per tree entry. The repository index comes
    last.

    Example:
        orchestrator = GenerationOrchestrator(layout, extractor, renderer)
        summary = orchestrator.run(["main", "develop"])
        print(f"{summary.failed} tasks failed")
    """

    def __init__(
        self,
        layout: SiteLayout,
        extractor: CommitGraphExtractor,
        renderer: PageRenderer,
        git_client: Optional[GitClient] = None,
        store: Optional[ObjectStore] = None,
        jobs: int = 8,
        graph: bool = False,
        link: str = "",
        refresh: bool = True
    ):
        """
        Initialize GenerationOrchestrator.

        Args:
            layout: Output locations
            extractor: Commit extraction over the working copy
            renderer: Page templates
            git_client: Git client (defaults to the extractor's)
            store: Object store (defaults to ``layout.object_root``)
            jobs: Worker threads
            graph: Include commit graphs on branch pages
            link: Public project URL for the index page
            refresh: Fetch each branch from upstream before extraction
        """
        self.layout = layout
        self.extractor = extractor
        self.resolver: TreeDiffResolver = extractor.resolver
        self.renderer = renderer
        self.git = git_client or extractor.git
        self.store = store or ObjectStore(layout.object_root)
        self.jobs = jobs
        self.graph = graph
        self.link = link
        self.refresh = refresh
        self.branches: List[Branch] = []
        self.last_result: Optional[GenerationSummary] = None

    @property
    def path(self) -> str:
        return self.resolver.path

    @property
    def types(self) -> BinaryTypes:
        return self.resolver.types

    def run(self, names: Sequence[str]) -> GenerationSummary:
        """
        Generate every page and object for ``names``.

        Returns once all dispatched tasks have finished.

        Raises:
            SetupError: Only if the repository index file cannot be written
        """
        summary = GenerationSummary()
        self.last_result = summary

        # Fetches share FETCH_HEAD and ref locks in one working copy
        if self.refresh:
            for name in names:
                self._refresh_branch(name)

        with ThreadPoolExecutor(max_workers=self.jobs) as executor:
            prepared: Dict[str, Branch] = {}
            futures = {executor.submit(self._guard, TaskKind.BRANCH, name, self._prepare_branch, name): name
                       for name in names}

            for future in as_completed(futures):
                detail, branch = future.result()
                summary.add_detail(detail)
                if branch is not None:
                    prepared[branch.name] = branch

            self.branches = [prepared[name] for name in names if name in prepared]
            logger.debug(f"file types: {self.types.snapshot()}")

            pending: List[Future] = []
            seen: Set[str] = set()

            for branch in self.branches:
                logger.info(f"processing branch: {branch.name}")
                pending.append(executor.submit(
                    self._guard, TaskKind.BRANCH_PAGE, branch.name, self._write_branch_page, branch
                ))

                for i, commit in enumerate(branch.commits):
                    if commit.hash in seen:
                        continue
                    seen.add(commit.hash)
                    logger.info(f"processing commit: {commit.abbr}: {i + 1}/{len(branch.commits)}")
                    pending.extend(self._dispatch_commit(executor, branch, commit))

            for future in as_completed(pending):
                detail, _ = future.result()
                summary.add_detail(detail)

        summary.add_detail(self._write_index(self.branches))

        logger.info(
            f"Generated {summary.successful} of {summary.total} items "
            f"({summary.skipped} skipped, {summary.failed} failed)"
        )
        return summary

    def _dispatch_commit(self, executor: ThreadPoolExecutor, branch: Branch, commit: Commit) -> List[Future]:
        futures = [executor.submit(
            self._guard, TaskKind.COMMIT_PAGE, commit.hash, self._write_commit_page, branch, commit
        )]
        for parent in commit.parents:
            futures.append(executor.submit(
                self._guard, TaskKind.DIFF_PAGE, f"{commit.hash}:{parent}",
                self._write_diff_page, branch, commit, parent
            ))
        for obj in commit.tree:
            futures.append(executor.submit(
                self._guard, TaskKind.OBJECT, f"{commit.hash}:{obj.path}",
                self._process_object, commit, obj
            ))
        return futures

    def _guard(
        self,
        kind: TaskKind,
        key: str,
        task: Callable[..., Tuple[TaskResult, Optional[Branch]]],
        *args
    ) -> Tuple[TaskResult, Optional[Branch]]:
        """Run ``task`` so that nothing it raises escapes the worker."""
        try:
            return task(*args)
        except Exception as e:
            logger.exception(f"Unexpected failure in {kind.value} {key}")
            return TaskResult.failed(kind, key, str(e)), None

    def _refresh_branch(self, name: str) -> None:
        logger.info(f"updating branch: {name}")
        try:
            self.git.fetch_branch(self.path, name)
        except GitCommandError as e:
            logger.warning(f"Unable to fetch branch {name}: {e}")

    def _prepare_branch(self, name: str) -> Tuple[TaskResult, Optional[Branch]]:
        try:
            branch = self.extractor.extract(name, graph=self.graph)
        except GitCommandError as e:
            logger.error(f"Unable to read commits of branch {name}: {e}")
            return TaskResult.failed(TaskKind.BRANCH, name, str(e)), None

        return TaskResult.ok(TaskKind.BRANCH, name, f"{len(branch.commits)} commits"), branch

    def _write_page(self, kind: TaskKind, key: str, target: Path, render: Callable[[], bytes]) -> TaskResult:
        try:
            page = render()
        except (RenderError, GitCommandError) as e:
            logger.error(f"Unable to render {kind.value} {key}: {e}")
            return TaskResult.failed(kind, key, str(e))

        try:
            write_atomic(target, page)
        except OSError as e:
            logger.error(f"Unable to write {target}: {e}")
            return TaskResult.failed(kind, key, str(e))

        return TaskResult.ok(kind, key)

    def _write_branch_page(self, branch: Branch) -> Tuple[TaskResult, None]:
        target = self.layout.branch_page(branch.name)
        return self._write_page(TaskKind.BRANCH_PAGE, branch.name, target,
                                lambda: self.renderer.branch_page(branch)), None

    def _write_commit_page(self, branch: Branch, commit: Commit) -> Tuple[TaskResult, None]:
        target = self.layout.commit_page(commit.hash)
        return self._write_page(TaskKind.COMMIT_PAGE, commit.hash, target,
                                lambda: self.renderer.commit_page(branch, commit)), None

    def _write_diff_page(self, branch: Branch, commit: Commit, parent: str) -> Tuple[TaskResult, None]:
        def render() -> bytes:
            body = self.resolver.diff_body(commit.hash, parent)
            return self.renderer.diff_page(branch, Diff(body=body, commit=commit, parent=parent))

        target = self.layout.diff_page(commit.hash, parent)
        return self._write_page(TaskKind.DIFF_PAGE, f"{commit.hash}:{parent}", target, render), None

    def _render_object(self, obj: TreeObject) -> Tuple[bytes, bytes]:
        raw = self.git.cat_blob(self.path, obj.hash)

        if self.types.is_binary(obj.ext):
            view = ObjectView(hash=obj.hash, path=obj.path, binary=True)
        else:
            body = self.git.show_blob(self.path, obj.hash)
            view = ObjectView(
                hash=obj.hash,
                path=obj.path,
                body=body,
                lines=tuple(line_numbers(body)),
            )

        return raw, self.renderer.object_page(view)

    def _commit_pages(self, commit: Commit) -> Set[Path]:
        pages = {self.layout.commit_page(commit.hash)}
        pages.update(self.layout.diff_page(commit.hash, parent) for parent in commit.parents)
        return pages

    def _process_object(self, commit: Commit, obj: TreeObject) -> Tuple[TaskResult, None]:
        key = f"{commit.hash}:{obj.path}"

        try:
            written = self.store.ensure_rendered(obj.hash, lambda: self._render_object(obj))
        except (GitCommandError, RenderError, OSError) as e:
            logger.error(f"Unable to store object {obj.hash} ({obj.path}): {e}")
            return TaskResult.failed(TaskKind.OBJECT, key, str(e)), None

        if not written:
            logger.debug(f"Object {obj.hash} already rendered")

        target = self.layout.object_link(commit.hash, obj.path)
        if target in self._commit_pages(commit):
            logger.warning(f"Not linking {obj.path} into commit {commit.abbr}: {target.name} is a generated page")
            return TaskResult.skipped(TaskKind.OBJECT, key, "name taken by a commit page"), None

        try:
            outcome = self.store.link(obj.hash, target)
        except OSError as e:
            logger.error(f"Unable to link object {obj.hash} into commit {commit.abbr}: {e}")
            return TaskResult.failed(TaskKind.OBJECT, key, str(e)), None

        if not written and outcome == LinkOutcome.EXISTS:
            return TaskResult.skipped(TaskKind.OBJECT, key, "up to date"), None

        message = f"{'rendered' if written else 'reused'}, {outcome.value}"
        return TaskResult.ok(TaskKind.OBJECT, key, message), None

    def _write_index(self, branches: Sequence[Branch]) -> TaskResult:
        try:
            page = self.renderer.index_page(branches, self.link)
        except RenderError as e:
            logger.error(f"Unable to render repository index: {e}")
            return TaskResult.failed(TaskKind.INDEX_PAGE, "index", str(e))

        try:
            write_atomic(self.layout.index, page)
        except OSError as e:
            raise SetupError(f"Unable to create repository index: {e}")

        return TaskResult.ok(TaskKind.INDEX_PAGE, "index")
