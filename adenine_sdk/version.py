"""
Version information for the Adenine SDK.

The version is declared once, in pyproject.toml. Installed copies read it
from package metadata; source checkouts read pyproject.toml directly.
"""
import importlib.metadata
import pathlib

import tomli

DISTRIBUTION = "adenine-sdk"
PYPROJECT_PATH = pathlib.Path(__file__).parent.parent / "pyproject.toml"
UNKNOWN_VERSION = "0+unknown"


def _read_version() -> str:
    try:
        return importlib.metadata.version(DISTRIBUTION)
    except importlib.metadata.PackageNotFoundError:
        pass
    try:
        with open(PYPROJECT_PATH, "rb") as f:
            return tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError):
        return UNKNOWN_VERSION


__version__ = _read_version()
