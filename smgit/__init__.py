"""
smgit - git source backend for the sm package manager.

This package installs packages from git repositories through a shared clone
cache, reports the version control status of installed packages and turns
installed packages into editable working copies.
"""

__version__ = "1.0.0"
__author__ = "smgit Team"
__description__ = "Git source backend for the sm package manager"

from .plugin import install, status, download, extract, edit
from .git.repository_info import StatusCode, StatusReport

__all__ = ["install", "status", "download", "extract", "edit", "StatusCode", "StatusReport"]
