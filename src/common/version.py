"""Version information for tap-unlock.

The installed distribution metadata is used when available; a source
checkout falls back to reading pyproject.toml.
"""

import tomllib
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path


DISTRIBUTION_NAME = 'tap-unlock'


@dataclass
class VersionInfo:
    """Version information.

    Attributes:
        version: Version string (e.g., "1")
        release_date: Release date in ISO format, or None
    """

    version: str
    release_date: str | None = None

    def __str__(self) -> str:
        if self.release_date:
            return f'v{self.version} ({self.release_date})'
        return f'v{self.version}'


def _find_pyproject_toml() -> Path | None:
    # common/ -> src/ -> project root
    project_root = Path(__file__).resolve().parent.parent.parent
    for candidate in (project_root / 'pyproject.toml', Path.cwd() / 'pyproject.toml'):
        if candidate.exists():
            return candidate
    return None


def _read_pyproject() -> dict:
    pyproject_path = _find_pyproject_toml()
    if pyproject_path is None:
        return {}
    try:
        with pyproject_path.open('rb') as f:
            return tomllib.load(f).get('project', {})
    except (OSError, tomllib.TOMLDecodeError):
        return {}


def get_version_info() -> VersionInfo:
    """Return version and release date, or version 'unknown'."""
    project_data = _read_pyproject()
    release_date = project_data.get('release_date')
    release_date_str = str(release_date) if release_date else None

    try:
        version = metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        version = project_data.get('version')

    return VersionInfo(version=str(version) if version else 'unknown', release_date=release_date_str)


__version__ = get_version_info().version
