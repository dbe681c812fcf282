#!/usr/bin/env python3

import os
import json
import tomllib
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List
from urllib.parse import urlparse
import re

import logging
import sys

import yaml

from .exit_codes import ConfigError
from .infra.file_store import FileStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("gitsite")

# Settings files looked up in the output directory, first match wins
CONFIG_FILENAMES = ['.gitsite.json', '.gitsite.toml', '.gitsite.yaml', '.gitsite.yml']
SAVED_CONFIG_FILENAME = CONFIG_FILENAMES[0]

ENV_PREFIX = "GITSITE_"

# scp-like git remotes: user@host:path
SCP_LIKE = re.compile(r'^[\w.-]+@[\w.-]+:.+')


@dataclass
class SiteOptions:
    """Effective options for one run."""
    source: str = ""
    name: str = "Project"
    url: str = ""
    branches: List[str] = field(default_factory=list)
    force: bool = False
    quiet: bool = False
    template: str = ""
    jobs: int = 8
    graph: bool = False

    @property
    def link(self) -> str:
        return self.url or self.source

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return SiteOptions().to_dict()


def set_log_level(quiet: bool = False, verbose: bool = False) -> None:
    """Adjust the package logger for --quiet / --verbose."""
    if quiet:
        logger.setLevel(logging.ERROR)
    elif verbose:
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)


def get_config_path(output_dir: Path) -> Path:
    """Get the path to the settings file for ``output_dir``.

    Checks in order:
    1. GITSITE_CONFIG environment variable
    2. .gitsite.json / .toml / .yaml / .yml inside the output directory
    """
    if 'GITSITE_CONFIG' in os.environ:
        path = Path(os.environ['GITSITE_CONFIG']).expanduser()
        if path.exists():
            return path

    output_dir = Path(output_dir)
    for filename in CONFIG_FILENAMES:
        path = output_dir / filename
        if path.exists():
            return path

    # If no file exists, return default path for saving
    return output_dir / SAVED_CONFIG_FILENAME


def load_config(output_dir: Path) -> Dict[str, Any]:
    """
    Load persisted settings for ``output_dir``.

    Unreadable files are logged and ignored, so a broken settings file
    never blocks a run that passes everything on the command line.
    """
    config_path = get_config_path(output_dir)
    file_config: Dict[str, Any] = {}

    if config_path.exists():
        try:
            suffix = config_path.suffix.lower()
            if suffix == '.toml':
                with open(config_path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif suffix in ('.yaml', '.yml'):
                with open(config_path, 'r', encoding='utf-8') as f:
                    file_config = yaml.safe_load(f) or {}
            else:
                file_config = FileStore(config_path).read()
        except (OSError, tomllib.TOMLDecodeError, yaml.YAMLError) as e:
            logger.warning(f"Unable to read config file {config_path}: {e}")
            file_config = {}

    if not isinstance(file_config, dict):
        logger.warning(f"Ignoring config file {config_path}: not a mapping")
        file_config = {}

    return apply_env_overrides(file_config)


def save_config(options: SiteOptions, output_dir: Path) -> Path:
    """Persist ``options`` as JSON in ``output_dir`` for the next run."""
    config_path = Path(output_dir) / SAVED_CONFIG_FILENAME
    FileStore(config_path).write(options.to_dict())
    logger.debug(f"Configuration saved to {config_path}")
    return config_path


def _typed(value: str) -> Any:
    if value.lower() in ('true', '1', 'yes', 'on'):
        return True
    if value.lower() in ('false', '0', 'no', 'off'):
        return False
    if value.isdigit():
        return int(value)
    return value


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: GITSITE_<OPTION>
    For example: GITSITE_JOBS=4, GITSITE_BRANCHES=main,develop
    """
    config = dict(config)
    known = set(get_default_config())

    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue

        key = env_key[len(ENV_PREFIX):].lower()
        if key not in known:
            continue

        if key == 'branches':
            config[key] = [b.strip() for b in value.split(',') if b.strip()]
        else:
            config[key] = _typed(value)

    return config


def resolve_option(provided: bool, flag_value: Any, config_value: Any, default: Any) -> Any:
    """
    Resolve one option.

    Priority: explicit flag > settings file > default
    """
    if provided:
        return flag_value
    if config_value is not None:
        return config_value
    return default


def dedupe(values: List[str]) -> List[str]:
    """Drop repeated entries, keeping first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def resolve_options(flags: Dict[str, Any], file_config: Dict[str, Any]) -> SiteOptions:
    """
    Merge command-line flags with persisted settings.

    ``flags`` holds None for every flag that was not given (an empty
    sequence for ``branches``).
    """
    defaults = SiteOptions()
    branches = list(flags.get('branches') or [])

    def pick(key: str) -> Any:
        value = flags.get(key)
        return resolve_option(value is not None, value, file_config.get(key), getattr(defaults, key))

    try:
        options = SiteOptions(
            source=str(pick('source') or ""),
            name=str(pick('name')),
            url=str(pick('url') or ""),
            branches=dedupe([str(b) for b in resolve_option(
                bool(branches), branches, file_config.get('branches'), defaults.branches
            )]),
            force=bool(pick('force')),
            quiet=bool(pick('quiet')),
            template=str(pick('template') or ""),
            jobs=int(pick('jobs')),
            graph=bool(pick('graph')),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid option value: {e}")

    if options.jobs < 1:
        raise ConfigError(f"jobs must be at least 1, got {options.jobs}")

    return options


def is_repository(path: Path) -> bool:
    """True for a work tree (``.git`` present) or a bare repository."""
    if (path / ".git").exists():
        return True
    return (path / "HEAD").is_file() and (path / "objects").is_dir() and (path / "refs").is_dir()


def validate_source(source: str) -> str:
    """
    Check that ``source`` looks like a repository.

    Accepts a local work tree or bare repository (returned absolute) or a
    URL-like remote (returned unchanged).
    """
    if not source:
        raise ConfigError("No source repository given")

    path = Path(source).expanduser()
    if path.is_dir():
        if not is_repository(path):
            raise ConfigError(f"Not a git repository: {source}")
        return str(path.resolve())

    parsed = urlparse(source)
    if parsed.scheme and (parsed.netloc or parsed.scheme == 'file'):
        return source
    if SCP_LIKE.match(source):
        return source

    raise ConfigError(f"Source is neither a local repository nor a URL: {source}")
