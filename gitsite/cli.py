#!/usr/bin/env python3

import click

from gitsite.commands.build import build_handler


@click.group()
@click.version_option(package_name='gitsite')
def cli():
    """gitsite - Static HTML site generator for git repositories.

    Renders every branch, commit, diff and file of a repository into a
    browsable, link-consistent set of pages.
    """
    pass


cli.add_command(build_handler, name='build')


def main():
    cli()

if __name__ == "__main__":
    main()
