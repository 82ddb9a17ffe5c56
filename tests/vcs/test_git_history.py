import subprocess
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from release_flag_filter.vcs.git_history import GitError, GitHistoryLookup


class DummyProc(SimpleNamespace):
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


def record(sha: str, subject: str, body: str = "") -> str:
    return f"{sha}\x1f{subject}\x1f{body}\n\x1e\n"


class TestGitHistoryLookup(unittest.TestCase):
    def test_log_for_flag_parses_records(self) -> None:
        output = (
            record("a" * 40, "feat(api): add endpoint", "Long body\nspanning lines\n\nFeature-Flag: FEATURE_X")
            + record("b" * 40, "fix: repair", "Feature-Flag: FEATURE_X")
        )
        calls = []

        def fake_run(self, args):
            calls.append(args)
            return DummyProc(returncode=0, stdout=output, stderr="")

        with patch.object(GitHistoryLookup, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            commits = GitHistoryLookup(Path("/repo")).log_for_flag("FEATURE_X")

        self.assertEqual([c.sha for c in commits], ["a" * 40, "b" * 40])
        first = commits[0]
        self.assertEqual(first.message, "feat(api): add endpoint\n\nLong body\nspanning lines\n\nFeature-Flag: FEATURE_X")
        self.assertEqual(first.type, "feat")
        self.assertEqual(first.scope, "api")
        self.assertEqual(commits[1].type, "fix")
        self.assertIsNone(commits[1].scope)
        self.assertIn("--grep=Feature-Flag:[[:space:]]*FEATURE_X", calls[0])
        self.assertIn("--extended-regexp", calls[0])
        self.assertIn("--all", calls[0])
        self.assertIn("--regexp-ignore-case", calls[0])

    def test_marker_spacing_variants_found(self) -> None:
        output = (
            record("7" * 40, "feat: tight", "Feature-Flag:FEATURE_X")
            + record("8" * 40, "feat: wide", "Feature-Flag:   FEATURE_X")
        )
        calls = []

        def fake_run(self, args):
            calls.append(args)
            return DummyProc(stdout=output)

        with patch.object(GitHistoryLookup, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            commits = GitHistoryLookup(Path("/repo")).lookup_historical_commits(["FEATURE_X"])

        self.assertEqual([c.sha for c in commits], ["7" * 40, "8" * 40])
        grep_args = [arg for arg in calls[0] if arg.startswith("--grep=")]
        self.assertEqual(grep_args, ["--grep=Feature-Flag:[[:space:]]*FEATURE_X"])

    def test_log_for_flag_drops_substring_matches(self) -> None:
        output = record("c" * 40, "feat: longer", "Feature-Flag: FEATURE_XY")

        with patch.object(GitHistoryLookup, "_run", return_value=DummyProc(stdout=output)):
            commits = GitHistoryLookup(Path("/repo")).log_for_flag("FEATURE_X")
        self.assertEqual(commits, [])

    def test_subject_only_marker(self) -> None:
        output = record("d" * 40, "feat: inline Feature-Flag: FEATURE_X")
        with patch.object(GitHistoryLookup, "_run", return_value=DummyProc(stdout=output)):
            commits = GitHistoryLookup(Path("/repo")).log_for_flag("FEATURE_X")
        self.assertEqual(len(commits), 1)
        self.assertEqual(commits[0].message, "feat: inline Feature-Flag: FEATURE_X")

    def test_malformed_records_skipped(self) -> None:
        output = "garbage\x1e\n\x1fmissing sha\x1fFeature-Flag: FEATURE_X\x1e\n" + "e" * 40 + "\x1f\x1fFeature-Flag: FEATURE_X\x1e\n"
        with patch.object(GitHistoryLookup, "_run", return_value=DummyProc(stdout=output)):
            commits = GitHistoryLookup(Path("/repo")).log_for_flag("FEATURE_X")
        self.assertEqual(commits, [])

    def test_empty_output(self) -> None:
        with patch.object(GitHistoryLookup, "_run", return_value=DummyProc(stdout="")):
            self.assertEqual(GitHistoryLookup(Path("/repo")).lookup_historical_commits(["FEATURE_X"]), [])

    def test_lookup_deduplicates_across_flags(self) -> None:
        output = record("f" * 40, "feat: both", "Feature-Flag: FEATURE_X")

        with patch.object(GitHistoryLookup, "_run", return_value=DummyProc(stdout=output)):
            commits = GitHistoryLookup(Path("/repo")).lookup_historical_commits(["FEATURE_X", "FEATURE_X"])
        self.assertEqual(len(commits), 1)

    def test_lookup_never_raises(self) -> None:
        good = record("1" * 40, "feat: ok", "Feature-Flag: FEATURE_B")

        def fake_run(self, args):
            if any("FEATURE_A" in arg for arg in args):
                raise GitError("fatal: bad revision")
            return DummyProc(stdout=good)

        with patch.object(GitHistoryLookup, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            commits = GitHistoryLookup(Path("/repo")).lookup_historical_commits(["FEATURE_A", "FEATURE_B"])
        self.assertEqual([c.sha for c in commits], ["1" * 40])


class TestGitHistoryRun(unittest.TestCase):
    def test_non_zero_exit_raises(self) -> None:
        proc = subprocess.CompletedProcess(args=["git"], returncode=128, stdout="", stderr="fatal: not a git repository")
        with patch("subprocess.run", return_value=proc):
            with self.assertRaises(GitError) as cm:
                GitHistoryLookup(Path("/repo"))._run(["log"])
        self.assertIn("not a git repository", str(cm.exception))

    def test_missing_git_binary(self) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError("git")):
            lookup = GitHistoryLookup(Path("/repo"))
            with self.assertRaises(GitError):
                lookup._run(["log"])
            self.assertEqual(lookup.lookup_historical_commits(["FEATURE_X"]), [])

    def test_find_repo_root(self) -> None:
        import tempfile

        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / ".git").mkdir()
            nested = root / "a" / "b"
            nested.mkdir(parents=True)
            self.assertEqual(GitHistoryLookup.find_repo_root(nested), root)


if __name__ == "__main__":
    unittest.main()
