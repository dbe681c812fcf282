"""
Whole-run driver for gitsite.

SiteBuilder owns the setup steps whose failure aborts a run (output
directories, working copy clone, branch listing) and hands the rest to
GenerationOrchestrator.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional
import logging

from ..domain import GenerationSummary, Project
from ..exit_codes import SetupError
from ..infra import GitClient, GitCommandError
from .branch_service import BranchResolver
from .generation_service import (
    COMMIT_DIR,
    OBJECT_DIR,
    SITE_DIRS,
    GenerationOrchestrator,
    SiteLayout,
)
from .history_service import BinaryTypes, CommitGraphExtractor, TreeDiffResolver
from .page_service import PageRenderer

logger = logging.getLogger(__name__)


def default_work_root() -> Path:
    """Parent directory of per-run working copies (user cache dir)."""
    cache = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(cache) / "gitsite"


class SiteBuilder:
    """
    Builds the static site of one project.

    Example:
        project = Project(name="demo", source="https://host/demo.git", output="site")
        summary = SiteBuilder(project).build()
        print(summary.successful, summary.failed)
    """

    def __init__(
        self,
        project: Project,
        git_client: Optional[GitClient] = None,
        template: Optional[str] = None,
        jobs: int = 8,
        graph: bool = False,
        force: bool = False,
        work_root: Optional[Path] = None
    ):
        """
        Initialize SiteBuilder.

        Args:
            project: Project name, source, output directory and branch whitelist
            git_client: Git client (default: a fresh GitClient)
            template: Template file or directory override
            jobs: Worker threads
            graph: Include commit graphs on branch pages
            force: Clear commit and object output before generating
            work_root: Where temporary working copies are created
        """
        self.project = project
        self.git = git_client or GitClient()
        self.template = template
        self.jobs = jobs
        self.graph = graph
        self.force = force
        self.work_root = Path(work_root) if work_root else default_work_root()
        self.layout = SiteLayout(Path(project.output))
        self.branches: List[str] = []

    def build(self) -> GenerationSummary:
        """
        Run the whole generation.

        Returns:
            Summary of every task

        Raises:
            SetupError: Output directories, clone, branch listing or index failed
            ConfigError: Template override missing
        """
        renderer = PageRenderer(self.project.name, self.template)
        self.prepare_output()

        work = self.clone()
        try:
            self.branches = self.resolve_branches(work)
            if not self.branches:
                logger.warning(f"No branches to render in {self.project.source}")
            else:
                self.checkout(work, self.branches[0])

            types = BinaryTypes()
            resolver = TreeDiffResolver(work, self.git, types)
            extractor = CommitGraphExtractor(work, self.git, resolver)
            orchestrator = GenerationOrchestrator(
                self.layout,
                extractor,
                renderer,
                git_client=self.git,
                jobs=self.jobs,
                graph=self.graph,
                link=self.project.link,
            )
            return orchestrator.run(self.branches)
        finally:
            logger.debug(f"Removing working copy {work}")
            shutil.rmtree(work, ignore_errors=True)

    def prepare_output(self) -> None:
        """
        Create the output tree; with ``force`` clear commit and object first.

        Branch pages are always kept.
        """
        root = self.layout.root
        try:
            if self.force:
                for name in (COMMIT_DIR, OBJECT_DIR):
                    target = root / name
                    if target.exists():
                        logger.info(f"Removing {target}")
                        shutil.rmtree(target)
            for name in SITE_DIRS:
                (root / name).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SetupError(f"Unable to prepare output directory {root}: {e}")

    def clone(self) -> str:
        """Clone the source into a fresh temporary working copy."""
        try:
            self.work_root.mkdir(parents=True, exist_ok=True)
            work = tempfile.mkdtemp(prefix="work-", dir=self.work_root)
        except OSError as e:
            raise SetupError(f"Unable to create working directory under {self.work_root}: {e}")

        logger.info(f"cloning {self.project.source}")
        try:
            self.git.clone(self.project.source, work)
        except GitCommandError as e:
            shutil.rmtree(work, ignore_errors=True)
            raise SetupError(f"Unable to clone {self.project.source}: {e}")
        return work

    def resolve_branches(self, work: str) -> List[str]:
        try:
            return BranchResolver(self.git).resolve(work, list(self.project.branches))
        except GitCommandError as e:
            raise SetupError(f"Unable to list branches: {e}")

    def checkout(self, work: str, branch: str) -> None:
        try:
            self.git.checkout(work, self.git.remote_ref(branch))
        except GitCommandError as e:
            logger.warning(f"Unable to check out {branch}: {e}")
