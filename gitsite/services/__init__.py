"""
Service layer for gitsite.

Services contain the generation logic and orchestrate the domain
objects and infrastructure:
- BranchResolver: which branches a run works on
- CommitGraphExtractor, TreeDiffResolver, BinaryTypes: history extraction
- PageRenderer: templates to HTML bytes
- GenerationOrchestrator: concurrent page and object generation
- SiteBuilder: setup and the whole run

Services use dependency injection for testability.
"""

from .branch_service import BranchResolver, filter_branches, parse_branch_listing
from .history_service import BinaryTypes, CommitGraphExtractor, TreeDiffResolver
from .page_service import PageKind, PageRenderer, RenderError
from .generation_service import GenerationOrchestrator, SiteLayout
from .site_service import SiteBuilder

__all__ = [
    'BranchResolver',
    'filter_branches',
    'parse_branch_listing',
    'BinaryTypes',
    'CommitGraphExtractor',
    'TreeDiffResolver',
    'PageKind',
    'PageRenderer',
    'RenderError',
    'GenerationOrchestrator',
    'SiteLayout',
    'SiteBuilder',
]
