#!/usr/bin/env python3
"""
Integration tests against real git repositories.

Each test builds a bare "remote" repository with tagged history in a temporary
directory and installs packages from it through the real gateway. Skipped when
the git binary is not available.
"""

import shutil
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

# Add the project root to the path so we can import smgit modules
sys.path.insert(0, str(Path(__file__).parent))

from smgit import plugin
from smgit.config import Config
from smgit.errors import PreconditionError
from smgit.git.repository_info import StatusCode
from smgit.pm.edit import EditOptions
from smgit.pm.fetch import FetchOptions, PackageFetcher
from smgit.platform import validate_git_availability


GIT_AVAILABLE, _ = validate_git_availability()


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.name=smgit tests", "-c", "user.email=tests@example.com", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True
    )
    return result.stdout


@unittest.skipUnless(GIT_AVAILABLE, "git binary not available")
class TestRealRepositories(unittest.TestCase):
    """Install, status and edit against a local bare remote."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.remote = self.temp_dir / "remote.git"
        self.work = self.temp_dir / "work"
        self.dest = self.temp_dir / "packages" / "pkg"

        git(self.temp_dir, "init", "--bare", str(self.remote))
        git(self.remote, "symbolic-ref", "HEAD", "refs/heads/main")

        self.work.mkdir()
        git(self.work, "init")
        git(self.work, "checkout", "-b", "main")
        self.first_revision = self.commit("README.md", "first\n", "Initial commit")
        git(self.work, "tag", "v1.0.0")
        self.commit("lib.js", "module.exports = 1;\n", "Add library")
        git(self.work, "tag", "v1.1.0")
        git(self.work, "remote", "add", "origin", str(self.remote))
        git(self.work, "push", "origin", "main", "--tags")

        self.config = Config(home_dir=self.temp_dir / "home")
        self.fetcher = PackageFetcher(self.config)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def commit(self, name: str, content: str, message: str, cwd: Path = None) -> str:
        cwd = cwd or self.work
        (cwd / name).write_text(content)
        git(cwd, "add", name)
        git(cwd, "commit", "-m", message)
        return git(cwd, "rev-parse", "HEAD").strip()

    def publish(self, name: str, content: str) -> str:
        revision = self.commit(name, content, f"Add {name}")
        git(self.work, "push", "origin", "main")
        return revision

    def install(self, revision: str, options: FetchOptions = None):
        return plugin.install(f"{self.remote}#{revision}", self.dest, options, fetcher=self.fetcher)

    def test_install_branch_and_reinstall(self):
        self.assertEqual(self.install("main"), StatusCode.OK)
        self.assertEqual((self.dest / "lib.js").read_text(), "module.exports = 1;\n")

        report = plugin.status(self.dest, fetcher=self.fetcher)
        self.assertEqual(report.branch, "main")
        self.assertEqual(report.tracking, "origin")
        self.assertTrue(report.synchronized)
        self.assertFalse(report.dirty)

        self.assertEqual(self.install("main"), StatusCode.NOT_MODIFIED)

    def test_new_remote_commits_are_installed(self):
        self.install("main")
        self.publish("feature.js", "new\n")

        self.assertEqual(self.install("main"), StatusCode.OK)
        self.assertEqual((self.dest / "feature.js").read_text(), "new\n")

    def test_exact_revision(self):
        self.assertEqual(self.install(self.first_revision), StatusCode.OK)

        report = plugin.status(self.dest, fetcher=self.fetcher)
        self.assertTrue(report.detached)
        self.assertEqual(report.revision, self.first_revision)
        self.assertEqual(report.tag, "v1.0.0")
        self.assertFalse((self.dest / "lib.js").exists())

        self.assertEqual(self.install(self.first_revision), StatusCode.NOT_MODIFIED)

    def test_version_selector(self):
        self.install("1.x")

        report = plugin.status(self.dest, fetcher=self.fetcher)
        self.assertTrue(report.detached)
        self.assertEqual(report.tag, "v1.1.0")

    def test_readonly_reinstall_at_other_revision(self):
        options = FetchOptions(readonly=True)

        self.assertEqual(self.install(self.first_revision, options), StatusCode.OK)
        self.assertFalse((self.dest / "lib.js").exists())

        self.assertEqual(self.install("v1.1.0", options), StatusCode.OK)
        self.assertEqual((self.dest / "lib.js").read_text(), "module.exports = 1;\n")
        self.assertFalse((self.dest / ".git").exists())

        self.assertEqual(self.install("v1.1.0", options), StatusCode.NOT_MODIFIED)

    def test_dirty_destination_is_preserved(self):
        self.install("main")
        (self.dest / "README.md").write_text("local edit\n")

        with self.assertRaises(PreconditionError):
            self.install("main", FetchOptions(delete=True))

        self.assertEqual((self.dest / "README.md").read_text(), "local edit\n")

    def test_ahead_destination_is_preserved(self):
        self.install("main")
        revision = self.commit("local.js", "mine\n", "Local work", cwd=self.dest)

        report = plugin.status(self.dest, fetcher=self.fetcher)
        self.assertEqual(report.ahead, 1)

        with self.assertRaises(PreconditionError):
            self.install("main")

        self.assertEqual(git(self.dest, "rev-parse", "HEAD").strip(), revision)

    def test_status_now_reports_behind(self):
        self.install("main")
        self.publish("later.js", "later\n")

        report = plugin.status(self.dest, now=True, fetcher=self.fetcher)

        self.assertEqual(report.behind, 1)
        self.assertEqual(report.ahead, 0)

    def test_writable_for_matching_write_uri(self):
        self.install("main")

        report = plugin.status(self.dest, locator=f"{self.remote}#main", fetcher=self.fetcher)

        self.assertTrue(report.writable)

    def test_edit_readonly_install(self):
        self.install("main", FetchOptions(readonly=True))
        self.assertFalse((self.dest / ".git").exists())
        (self.dest / "node_modules" / "dep").mkdir(parents=True)
        (self.dest / "node_modules" / "dep" / "index.js").write_text("dependency\n")

        status_code = plugin.edit(self.dest, EditOptions(locator=f"{self.remote}#main"), fetcher=self.fetcher)

        self.assertEqual(status_code, StatusCode.OK)
        self.assertTrue((self.dest / ".git").is_dir())
        self.assertEqual((self.dest / "node_modules" / "dep" / "index.js").read_text(), "dependency\n")
        self.assertEqual(list(self.dest.parent.glob("pkg~backup-*")), [])

    def test_direct_install(self):
        options = FetchOptions(use_cache=False)

        self.assertEqual(self.install("main", options), StatusCode.OK)
        self.assertEqual(self.install("main", options), StatusCode.NOT_MODIFIED)
        self.assertFalse(self.config.cache_dir.exists())


if __name__ == '__main__':
    unittest.main()
