"""
Build command for gitsite.

Renders a git repository's branches, commits, diffs and files into a
static HTML site.
"""

import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from ..config import (
    load_config,
    resolve_options,
    save_config,
    set_log_level,
    validate_source,
    logger,
)
from ..domain import Project
from ..exit_codes import INTERRUPTED, CommandError, SetupError, get_exit_code_for_exception
from ..render import render_summary
from ..services import SiteBuilder


@click.command('build')
@click.argument('output', type=click.Path(file_okay=False), default='.')
@click.option('-s', '--source', default=None, help='Repository URL or local working copy')
@click.option('-n', '--name', default=None, help='Project display name')
@click.option('-u', '--url', default=None, help='Public project URL shown on the home page')
@click.option('-b', '--branch', 'branches', multiple=True,
              help='Branch to render (repeatable; default: all branches)')
@click.option('-f', '--force/--no-force', default=None, help='Clear commit and object pages first')
@click.option('-q', '--quiet/--no-quiet', default=None, help='Only report errors')
@click.option('-t', '--template', default=None, type=click.Path(),
              help='Template file or directory overriding the bundled templates')
@click.option('-j', '--jobs', default=None, type=int, help='Worker threads (default: 8)')
@click.option('--graph/--no-graph', default=None, help='Show the commit graph on branch pages')
@click.option('--json', 'output_json', is_flag=True, help='Print task results as JSONL instead of the summary table')
@click.option('-v', '--verbose', is_flag=True, help='Debug logging')
def build_handler(
    output: str,
    source: Optional[str],
    name: Optional[str],
    url: Optional[str],
    branches: Tuple[str, ...],
    force: Optional[bool],
    quiet: Optional[bool],
    template: Optional[str],
    jobs: Optional[int],
    graph: Optional[bool],
    output_json: bool,
    verbose: bool,
):
    """
    Generate a static site for a git repository into OUTPUT.

    Options not given on the command line are read from the settings
    saved in OUTPUT by the previous run (.gitsite.json), then from
    GITSITE_<OPTION> environment variables.

    \b
    Examples:
        # First run: everything on the command line
        gitsite build site -s https://example.com/project.git -n Project
        # Later runs reuse the saved settings
        gitsite build site
        # Only two branches, rebuilt from scratch
        gitsite build site -b main -b develop --force
    """
    output_dir = Path(output)
    flags = {
        'source': source,
        'name': name,
        'url': url,
        'branches': list(branches),
        'force': force,
        'quiet': quiet,
        'template': template,
        'jobs': jobs,
        'graph': graph,
    }

    try:
        options = resolve_options(flags, load_config(output_dir))
        set_log_level(quiet=options.quiet, verbose=verbose)
        options.source = validate_source(options.source)
        try:
            save_config(options, output_dir)
        except OSError as e:
            raise SetupError(f"Unable to save settings in {output_dir}: {e}")

        project = Project(
            name=options.name,
            source=options.source,
            output=str(output_dir),
            url=options.url,
            branches=tuple(options.branches),
        )
        builder = SiteBuilder(
            project,
            template=options.template or None,
            jobs=options.jobs,
            graph=options.graph,
            force=options.force,
        )
        summary = builder.build()
    except KeyboardInterrupt:
        click.echo("Interrupted by user", err=True)
        sys.exit(INTERRUPTED)
    except CommandError as e:
        logger.error(str(e))
        sys.exit(get_exit_code_for_exception(e))

    if output_json:
        for detail in summary.details:
            print(json.dumps(detail.to_dict()), flush=True)
        print(json.dumps(summary.to_dict()), flush=True)
    elif not options.quiet:
        render_summary(summary)
