#!/usr/bin/env python3
"""
Unit tests for status reconciliation.

Covers the status summary parser, the four-range classification rules
(including which emptiness combinations the rules leave uncovered) and the
full status computation against a scripted gateway.
"""

import itertools
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

# Add the project root to the path so we can import smgit modules
sys.path.insert(0, str(Path(__file__).parent))

from git_fakes import FakeGateway
from smgit.errors import CommandError
from smgit.git.repository import GitRepository
from smgit.git.repository_info import DETACHED
from smgit.git.status import (
    StatusReconciler,
    classify_ranges,
    parse_status_summary,
    parse_tag_decoration,
)


REVISION = "aaa1111000000000000000000000000000000000"

REMOTE_SHOW = """\
* remote origin
  Fetch URL: https://github.com/octocat/repo.git
  Push  URL: git@github.com:octocat/repo.git
  HEAD branch: (not queried)
  Remote branches: (status not queried)
    dev
    main
  Local branch configured for 'git pull':
    main merges with remote main
"""


class TestParseStatusSummary(unittest.TestCase):
    """Test cases for the status summary parser."""

    def test_porcelain_clean(self):
        summary = parse_status_summary("## main...origin/main\n")

        self.assertEqual(summary.branch, "main")
        self.assertFalse(summary.dirty)
        self.assertEqual((summary.ahead, summary.behind), (0, 0))

    def test_porcelain_diverged_and_dirty(self):
        summary = parse_status_summary("## dev...origin/dev [ahead 2, behind 3]\n M README.md\n?? new.txt\n")

        self.assertEqual(summary.branch, "dev")
        self.assertTrue(summary.dirty)
        self.assertEqual((summary.ahead, summary.behind), (2, 3))

    def test_porcelain_detached(self):
        summary = parse_status_summary("## HEAD (no branch)\n")

        self.assertTrue(summary.detached)
        self.assertEqual(summary.branch, DETACHED)

    def test_porcelain_unborn(self):
        summary = parse_status_summary("## No commits yet on main\n")

        self.assertTrue(summary.unborn)
        self.assertEqual(summary.branch, "main")

    def test_long_form_clean(self):
        summary = parse_status_summary("On branch main\nYour branch is up to date with 'origin/main'.\n\n"
                                       "nothing to commit, working tree clean\n")

        self.assertEqual(summary.branch, "main")
        self.assertFalse(summary.dirty)

    def test_legacy_long_form(self):
        summary = parse_status_summary("# On branch main\n# Your branch is ahead of 'origin/main' by 2 commits.\n"
                                       "#\nnothing to commit (working directory clean)\n")

        self.assertEqual(summary.branch, "main")
        self.assertEqual(summary.ahead, 2)
        self.assertFalse(summary.dirty)

    def test_long_form_diverged(self):
        summary = parse_status_summary("On branch main\nYour branch and 'origin/main' have diverged,\n"
                                       "and have 1 and 4 different commits each, respectively.\n"
                                       "\nChanges not staged for commit:\n\tmodified:   a.txt\n")

        self.assertEqual((summary.ahead, summary.behind), (1, 4))
        self.assertTrue(summary.dirty)

    def test_tag_decoration(self):
        self.assertEqual(parse_tag_decoration("aaa1111 (HEAD -> main, tag: v1.2.0, origin/main) Release"), "v1.2.0")
        self.assertIsNone(parse_tag_decoration("aaa1111 (HEAD -> main) Work"))


class TestClassifyRanges(unittest.TestCase):
    """Test cases for the four-range classification rules."""

    def test_behind_after_fetch(self):
        self.assertEqual(classify_ranges(REVISION, [], [], [], ["ddd4444", "eee5555"]), (0, 2))

    def test_fetched_tip_is_head(self):
        self.assertEqual(classify_ranges(REVISION, [], [], [], ["aaa1111"]), (0, 0))

    def test_synchronized(self):
        self.assertEqual(classify_ranges(REVISION, [], [], [], []), (0, 0))

    def test_ahead_and_fetched_new_commits(self):
        self.assertEqual(classify_ranges(REVISION, ["aaa1111", "bbb0000"], ["ccc3333"], [], []), (2, 1))

    def test_ahead_with_fetched_commit_already_local(self):
        self.assertEqual(classify_ranges(REVISION, ["aaa1111", "ccc3333"], ["ccc3333"], [], []), (2, 0))

    def test_head_not_local_tip_is_behind(self):
        self.assertEqual(classify_ranges(REVISION, ["bbb0000"], ["ccc3333", "ddd4444"], [], []), (0, 2))

    def test_ahead_only(self):
        self.assertEqual(classify_ranges(REVISION, ["aaa1111", "bbb0000", "ccc0000"], [], [], []), (3, 0))

    def test_behind_fetched_only(self):
        self.assertEqual(classify_ranges(REVISION, [], ["ccc3333"], [], []), (0, 1))

    def test_behind_remote_branch_only(self):
        self.assertEqual(classify_ranges(REVISION, [], [], ["ccc3333", "ddd4444"], []), (0, 2))

    def test_diverged_from_remote_branch(self):
        self.assertEqual(classify_ranges(REVISION, ["aaa1111"], [], ["ccc3333", "ddd4444"], []), (1, 2))

    def test_emptiness_combinations(self):
        """
        Every emptiness combination of the four ranges.

        Nine combinations match no rule and come back as (0, 0) although at least
        one range is non-empty. They are listed explicitly so a change in coverage
        shows up here.
        """
        covered = {
            (False, False, False, False): (0, 0),
            (False, False, False, True): (0, 1),
            (False, False, True, False): (0, 1),
            (False, True, False, False): (0, 1),
            (True, False, False, False): (1, 0),
            (True, False, True, False): (1, 1),
            (True, True, False, False): (1, 1),
        }
        uncovered = {
            (False, False, True, True),
            (False, True, False, True),
            (False, True, True, False),
            (False, True, True, True),
            (True, False, False, True),
            (True, False, True, True),
            (True, True, False, True),
            (True, True, True, False),
            (True, True, True, True),
        }
        samples = (["aaa1111"], ["bbb2222"], ["ccc3333"], ["ddd4444"])

        for combination in itertools.product((False, True), repeat=4):
            ranges = [sample if present else [] for sample, present in zip(samples, combination)]
            with self.subTest(combination=combination):
                result = classify_ranges(REVISION, *ranges)
                if combination in covered:
                    self.assertEqual(result, covered[combination])
                else:
                    self.assertIn(combination, uncovered)
                    self.assertEqual(result, (0, 0))

        self.assertEqual(len(covered) + len(uncovered), 16)


class TestStatusReconciler(unittest.TestCase):
    """Test cases for complete status reports."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.repo_dir = self.temp_dir / "repo"
        (self.repo_dir / ".git").mkdir(parents=True)
        self.gateway = FakeGateway()
        self.repo = GitRepository(self.repo_dir, self.gateway)
        self.reconciler = StatusReconciler(self.repo)

        self.gateway.on("rev-parse", "HEAD", output=REVISION + "\n")
        self.gateway.on("remote", "show", "-n", "origin", output=REMOTE_SHOW)
        self.gateway.on("remote", "show", output="origin\n")
        self.gateway.on("log", "--oneline", "--decorate", output="aaa1111 (HEAD -> main, tag: v1.0.0) Release\n")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def script_ranges(self, branch, to_head="", to_fetch_head="", from_head="", from_fetch_head="",
                      fetch_ref=None):
        remote_ref = f"origin/{branch}"
        fetch_ref = fetch_ref or remote_ref
        self.gateway.on("log", "--oneline", f"{remote_ref}..HEAD", output=to_head)
        self.gateway.on("log", "--oneline", f"{remote_ref}..{fetch_ref}", output=to_fetch_head)
        self.gateway.on("log", "--oneline", f"HEAD..{remote_ref}", output=from_head)
        self.gateway.on("log", "--oneline", f"{fetch_ref}..{remote_ref}", output=from_fetch_head)

    def test_not_a_working_copy(self):
        report = StatusReconciler(GitRepository(self.temp_dir, self.gateway)).status()

        self.assertFalse(report.is_repository)
        self.assertEqual(self.gateway.calls, [])

    def test_synchronized_branch(self):
        self.gateway.on("status", output="## main\n")
        self.script_ranges("main")

        report = self.reconciler.status(write_uri="git@github.com:octocat/repo.git")

        self.assertTrue(report.is_repository)
        self.assertEqual(report.branch, "main")
        self.assertEqual(report.revision, REVISION)
        self.assertEqual(report.tag, "v1.0.0")
        self.assertEqual(report.tracking, "origin")
        self.assertTrue(report.writable)
        self.assertTrue(report.synchronized)
        self.assertEqual(report.remote_branches, ["dev", "main"])

    def test_not_writable_for_other_write_uri(self):
        self.gateway.on("status", output="## main\n")
        self.script_ranges("main")

        report = self.reconciler.status(write_uri="git@github.com:someone-else/repo.git")

        self.assertFalse(report.writable)

    def test_summary_divergence_skips_range_queries(self):
        self.gateway.on("status", output="## main...origin/main [ahead 1]\n")

        report = self.reconciler.status()

        self.assertEqual(report.ahead, 1)
        self.assertEqual(self.gateway.count("log", "--oneline", "origin/main..HEAD"), 0)

    def test_detached_head_skips_ahead_behind(self):
        self.gateway.on("status", output="## HEAD (no branch)\n")

        report = self.reconciler.status()

        self.assertTrue(report.detached)
        self.assertEqual(report.branch, REVISION)
        self.assertEqual((report.ahead, report.behind), (0, 0))
        self.assertEqual(self.gateway.count("log", "--oneline", "HEAD"), 0)

    def test_behind_after_fetch_uses_fetch_head(self):
        (self.repo_dir / ".git" / "FETCH_HEAD").write_text(REVISION + "\t\tbranch 'main' of host\n")
        self.gateway.on("status", output="## main\n")
        self.script_ranges("main", from_fetch_head="ddd4444 Remote work\neee5555 More\n", fetch_ref="FETCH_HEAD")

        report = self.reconciler.status()

        self.assertEqual((report.ahead, report.behind), (0, 2))

    def test_diverged(self):
        self.gateway.on("status", output="## dev\n")
        self.script_ranges("dev", to_head="aaa1111 Local\n", from_head="ccc3333 Remote\nddd4444 Remote\n")

        report = self.reconciler.status()

        self.assertEqual((report.ahead, report.behind), (1, 2))
        self.assertTrue(report.diverged)

    def test_branch_without_remote_counterpart(self):
        self.gateway.on("status", output="## feature\n")
        self.gateway.on("log", "--oneline", "origin/feature..HEAD",
                        error="fatal: ambiguous argument 'origin/feature..HEAD': unknown revision or path")
        self.gateway.on("log", "--oneline", "HEAD", output="aaa1111 c\nbbb2222 b\nccc3333 a\n")

        report = self.reconciler.status()

        self.assertTrue(report.no_remote)
        self.assertEqual(report.ahead, 3)
        self.assertIsNone(report.tracking)

    def test_unexpected_range_failure_propagates(self):
        self.gateway.on("status", output="## main\n")
        self.gateway.on("log", "--oneline", "origin/main..HEAD", error="fatal: bad object HEAD")

        with self.assertRaises(CommandError):
            self.reconciler.status()

    def test_fetch_first(self):
        self.gateway.on("status", output="## main\n")
        self.script_ranges("main")

        self.reconciler.status(fetch=True)

        self.assertEqual(self.gateway.commands("fetch"), [["fetch", "origin"]])

    def test_unborn_branch(self):
        self.gateway.on("status", output="## No commits yet on main\n")

        report = self.reconciler.status()

        self.assertTrue(report.is_repository)
        self.assertIsNone(report.revision)
        self.assertEqual(self.gateway.count("rev-parse"), 0)


if __name__ == '__main__':
    unittest.main()
