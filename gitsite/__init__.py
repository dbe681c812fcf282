"""
gitsite - A static HTML site generator for git repositories.

gitsite clones a repository and renders every branch, commit, diff and
file into plain HTML pages that link to each other with relative paths,
so the output can be served from any static host or opened locally.

Quick Start:
    from gitsite import Project, SiteBuilder

    project = Project(
        name="demo",
        source="https://example.com/demo.git",
        output="site",
    )
    summary = SiteBuilder(project, jobs=4).build()
    print(summary.successful, summary.failed)

Domain Objects:
    Branch, Commit, TreeObject - the extracted history
    Diff, Overview - per-parent patch and diff-stat
    TaskResult, GenerationSummary - outcome of a run

Services:
    BranchResolver - which branches to render
    CommitGraphExtractor - commits of a branch
    PageRenderer - Jinja2 templates to HTML
    GenerationOrchestrator - concurrent page and object generation
    SiteBuilder - setup and the whole run

Output:
    index.html, branch/<name>/, commit/<hash>/, object/<hh>/<hash>
"""

__version__ = "0.4.0"

from .domain import (
    Author,
    Branch,
    Commit,
    Diff,
    GenerationSummary,
    Overview,
    Project,
    TaskResult,
    TreeObject,
)
from .infra import GitClient, GitCommandError, ObjectStore
from .services import (
    BranchResolver,
    CommitGraphExtractor,
    GenerationOrchestrator,
    PageRenderer,
    SiteBuilder,
)

__all__ = [
    '__version__',
    'Author',
    'Branch',
    'Commit',
    'Diff',
    'GenerationSummary',
    'Overview',
    'Project',
    'TaskResult',
    'TreeObject',
    'GitClient',
    'GitCommandError',
    'ObjectStore',
    'BranchResolver',
    'CommitGraphExtractor',
    'GenerationOrchestrator',
    'PageRenderer',
    'SiteBuilder',
]
