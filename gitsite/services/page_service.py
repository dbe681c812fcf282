"""
Page rendering for gitsite.

Maps typed records onto Jinja2 templates and returns HTML bytes. Every
page receives the same shared fields:
- project: display name
- base: relative prefix back to the output root, prepended to every link
- title: project/branch/commit/file joined by TITLE_DELIMITER
plus one kind-specific payload (branches, branch+commits, commit, diff
or object).
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Sequence
import logging

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    TemplateError,
    select_autoescape,
)

from ..annotate import annotate_diff, annotate_stat, diff_page_name
from ..domain import Branch, Commit, Diff, ObjectView
from ..exit_codes import ConfigError

logger = logging.getLogger(__name__)

TITLE_DELIMITER = ": "


class PageKind(Enum):
    """Closed set of page kinds."""
    INDEX = "index"
    BRANCH = "branch"
    COMMIT = "commit"
    DIFF = "diff"
    OBJECT = "object"

    @property
    def template_name(self) -> str:
        return f"{self.value}.html"


class RenderError(Exception):
    """A template failed to load or execute."""


def make_title(*parts: Optional[str]) -> str:
    """Join the non-empty title parts."""
    return TITLE_DELIMITER.join(p for p in parts if p)


def base_path(depth: int) -> str:
    """Relative prefix from a page ``depth`` directories below the root."""
    return "./" if depth <= 0 else "../" * depth


class PageRenderer:
    """
    Renders site pages from the bundled templates.

    An override path may be a single template file, used for every page
    kind, or a directory whose files replace same-named bundled
    templates.

    Example:
        renderer = PageRenderer("My Project")
        html = renderer.branch_page(branch)
    """

    def __init__(self, project: str, template: Optional[str] = None):
        """
        Initialize PageRenderer.

        Args:
            project: Project display name
            template: Optional template file or directory override

        Raises:
            ConfigError: If the override path does not exist
        """
        self.project = project
        self._single: Optional[str] = None

        loaders = [PackageLoader("gitsite", "templates")]
        if template:
            path = Path(template).expanduser()
            if path.is_file():
                loaders.insert(0, FileSystemLoader(str(path.parent)))
                self._single = path.name
            elif path.is_dir():
                loaders.insert(0, FileSystemLoader(str(path)))
            else:
                raise ConfigError(f"Template override not found: {template}")

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(['html', 'xml'], default=True),
            keep_trailing_newline=True,
        )
        self.env.filters['diffbody'] = annotate_diff
        self.env.filters['diffstat'] = annotate_stat
        self.env.filters['diffpage'] = diff_page_name

    def render(self, kind: PageKind, data: Dict[str, Any], base: str, title: str) -> bytes:
        """
        Render one page.

        Raises:
            RenderError: Template missing or failing to execute
        """
        context = {
            'project': self.project,
            'base': base,
            'title': title,
            'kind': kind.value,
            **data,
        }
        try:
            template = self.env.get_template(self._single or kind.template_name)
            return template.render(**context).encode("utf-8")
        except TemplateError as e:
            raise RenderError(f"{kind.value} page: {e}") from e

    def index_page(self, branches: Sequence[Branch], link: str = "") -> bytes:
        return self.render(
            PageKind.INDEX,
            {'branches': list(branches), 'link': link},
            base=base_path(0),
            title=make_title(self.project),
        )

    def branch_page(self, branch: Branch) -> bytes:
        return self.render(
            PageKind.BRANCH,
            {'branch': branch, 'commits': list(branch.commits)},
            base=base_path(branch.depth),
            title=make_title(self.project, branch.name),
        )

    def commit_page(self, branch: Branch, commit: Commit) -> bytes:
        return self.render(
            PageKind.COMMIT,
            {'branch': branch, 'commit': commit},
            base=base_path(2),
            title=make_title(self.project, branch.name, commit.abbr),
        )

    def diff_page(self, branch: Branch, diff: Diff) -> bytes:
        return self.render(
            PageKind.DIFF,
            {'branch': branch, 'diff': diff, 'commit': diff.commit},
            base=base_path(2),
            title=make_title(self.project, branch.name, diff.commit.abbr, diff.parent[:7]),
        )

    def object_page(self, view: ObjectView) -> bytes:
        """
        Render a content-addressed file page.

        The page depends on the content hash only and links nowhere outside
        itself, so one file serves every commit and path holding the content.
        """
        rows = list(zip(view.lines, view.body.split("\n"))) if not view.binary else []
        return self.render(
            PageKind.OBJECT,
            {'object': view, 'rows': rows},
            base=base_path(2),
            title=make_title(self.project, view.hash[:7]),
        )
