"""Tests for the CLI entry point."""

import subprocess
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from prsift_cli.cli import _build_store, main
from prsift_cli.commands.review import _review_to_record
from prsift_core.errors import DeliveryError, NormalizationError, ResolutionError
from prsift_core.models import Finding, PullRequestRef, Review
from prsift_store.base import BaseStore
from prsift_store.json_file import JsonFileStore
from prsift_store.models import FindingRecord, ReviewRecord


def _make_config(github_token="tok", model="anthropic", anthropic_key="ant", openai_key=None, github_repo="owner/repo"):
    return {
        "github_token": github_token,
        "model": model,
        "anthropic_api_key": anthropic_key,
        "openai_api_key": openai_key,
        "guidelines": None,
        "max_diff_chars": 100_000,
        "pr_list_limit": 15,
        "reviews_dir": ".prsift/reviews",
        "github_repo": github_repo,
    }


def _patch_common(mocker, config=None, token="tok"):
    """Patch load_config, resolve_github_token, and _build_store for most tests."""
    cfg = config or _make_config()
    load = mocker.patch("prsift_core.config.load_config", return_value=cfg)
    mocker.patch("prsift_cli.auth.resolve_github_token", return_value=token)
    mock_store = MagicMock(spec=BaseStore)
    mock_store.list_reviews.return_value = []
    mock_store.load.return_value = None
    mocker.patch("prsift_cli.cli._build_store", return_value=mock_store)
    return cfg, mock_store, load


def _patch_review(mocker):
    mocker.patch("prsift_cli.commands.review.get_repo", return_value=MagicMock())
    mocker.patch("prsift_cli.commands.review.get_reviewer", return_value=MagicMock())
    return mocker.patch("prsift_cli.commands.review.run_review")


class TestCLIValidation:
    def test_missing_github_token(self, mocker):
        _patch_common(mocker, config=_make_config(github_token=None), token=None)
        mock_run = _patch_review(mocker)

        result = CliRunner().invoke(main, ["review", "1"])
        assert result.exit_code == 1
        assert "GITHUB_TOKEN" in result.output
        mock_run.assert_not_called()

    def test_missing_anthropic_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="anthropic", anthropic_key=None))
        _patch_review(mocker)

        result = CliRunner().invoke(main, ["review", "1"])
        assert result.exit_code == 1
        assert "ANTHROPIC_API_KEY" in result.output

    def test_missing_openai_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="openai", anthropic_key=None, openai_key=None))
        _patch_review(mocker)

        result = CliRunner().invoke(main, ["review", "1"])
        assert result.exit_code == 1
        assert "OPENAI_API_KEY" in result.output

    def test_unknown_model_from_config_file(self, mocker):
        _patch_common(mocker, config=_make_config(model="llama"))
        _patch_review(mocker)

        result = CliRunner().invoke(main, ["review", "1"])
        assert result.exit_code == 1
        assert "Unknown model provider" in result.output

    def test_invalid_model_option_is_usage_error(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["review", "--model", "llama"])
        assert result.exit_code == 2

    def test_repo_undetectable(self, mocker):
        _patch_common(mocker, config=_make_config(github_repo=None))
        mocker.patch("prsift_cli.commands.review.detect_repo_from_git", return_value=None)
        mock_run = _patch_review(mocker)

        result = CliRunner().invoke(main, ["review", "1"])
        assert result.exit_code == 1
        assert "Cannot determine GitHub repo" in result.output
        mock_run.assert_not_called()


class TestCLIRunReview:
    def test_calls_run_review_with_correct_args(self, mocker):
        _patch_common(mocker)
        mock_run = _patch_review(mocker)

        result = CliRunner().invoke(main, ["review", "42", "--post"])

        assert result.exit_code == 0
        mock_run.assert_called_once()
        kwargs = mock_run.call_args.kwargs
        assert kwargs["pr_ref"] == "42"
        assert kwargs["post"] is True
        assert callable(kwargs["persist"])

    def test_report_only_by_default(self, mocker):
        _patch_common(mocker)
        mock_run = _patch_review(mocker)

        CliRunner().invoke(main, ["review"])

        assert mock_run.call_args.kwargs["pr_ref"] is None
        assert mock_run.call_args.kwargs["post"] is False

    def test_options_become_config_overrides(self, mocker):
        _, _, load = _patch_common(mocker)
        _patch_review(mocker)

        CliRunner().invoke(main, ["review", "--model", "openai", "--guidelines", "G.md", "--repo", "a/b"])

        assert load.call_args.kwargs["cli_overrides"] == {"model": "openai", "guidelines": "G.md", "github_repo": "a/b"}

    def test_repo_detected_from_git(self, mocker):
        _patch_common(mocker, config=_make_config(github_repo=None))
        mocker.patch("prsift_cli.commands.review.detect_repo_from_git", return_value="me/proj")
        get_repo = mocker.patch("prsift_cli.commands.review.get_repo", return_value=MagicMock())
        mocker.patch("prsift_cli.commands.review.get_reviewer", return_value=MagicMock())
        mocker.patch("prsift_cli.commands.review.run_review")

        CliRunner().invoke(main, ["review", "1"])

        get_repo.assert_called_once_with("me/proj", token="tok")

    def test_persist_saves_record_to_store(self, mocker):
        _, mock_store, _ = _patch_common(mocker)
        mock_store.save.return_value = ".prsift/reviews/pr-1-review.json"
        mock_run = _patch_review(mocker)

        CliRunner().invoke(main, ["review", "1", "--post"])

        persist = mock_run.call_args.kwargs["persist"]
        review = Review(pr=PullRequestRef(1, "main", "a" * 40, "owner/repo"), summary="s")
        assert persist(review) == ".prsift/reviews/pr-1-review.json"
        saved = mock_store.save.call_args.args[0]
        assert isinstance(saved, ReviewRecord)
        assert saved.pr == 1

    def test_fatal_error_exits_one_with_single_line(self, mocker):
        _patch_common(mocker)
        mock_run = _patch_review(mocker)
        mock_run.side_effect = ResolutionError("PR #9 not found in owner/repo\n404 Not Found")

        result = CliRunner().invoke(main, ["review", "9"])

        assert result.exit_code == 1
        assert "Error: PR #9 not found in owner/repo" in result.output
        assert "Traceback" not in result.output

    def test_delivery_error_exits_one(self, mocker):
        _patch_common(mocker)
        mock_run = _patch_review(mocker)
        mock_run.side_effect = DeliveryError("Error posting review: 403 Forbidden")

        result = CliRunner().invoke(main, ["review", "9", "--post"])

        assert result.exit_code == 1
        assert "403 Forbidden" in result.output


class TestCLIReviewEndToEnd:
    """Real orchestrator and JsonFileStore; only GitHub and the model are faked."""

    PR = PullRequestRef(42, "main", "a" * 40, "owner/repo", "Add retry")

    def _setup(self, mocker, tmp_path, monkeypatch, reviewer):
        monkeypatch.chdir(tmp_path)
        _patch_common(mocker)
        mocker.patch("prsift_cli.cli._build_store", return_value=JsonFileStore(root=tmp_path))
        mocker.patch("prsift_cli.commands.review.get_repo", return_value=MagicMock())
        mocker.patch("prsift_cli.commands.review.get_reviewer", return_value=reviewer)
        mocker.patch("prsift_core.reviewer.resolve_pr", return_value=self.PR)
        mocker.patch("prsift_core.reviewer.get_changed_files", return_value=[MagicMock()])
        mocker.patch("prsift_core.reviewer.get_diff", return_value="diff --git a/a.py b/a.py\n+x\n")
        mocker.patch("prsift_core.reviewer.get_changed_files_summary", return_value=" a.py | 1 +")
        mocker.patch("prsift_core.reviewer.load_guidelines", return_value="rules")
        mocker.patch("prsift_core.reviewer.get_pull", return_value=MagicMock())
        mocker.patch("click.prompt", return_value="approve")
        mocker.patch("click.confirm", return_value=True)
        return mocker.patch("prsift_core.delivery.create_inline_review")

    def _finding_reviewer(self):
        reviewer = MagicMock()
        reviewer.review.return_value = [
            Finding(id=1, severity="warning", confidence=85, title="t", file="a.py", line=1, why="w", body="b")
        ]
        return reviewer

    def test_posts_and_writes_record(self, mocker, tmp_path, monkeypatch):
        create = self._setup(mocker, tmp_path, monkeypatch, self._finding_reviewer())

        result = CliRunner().invoke(main, ["review", "42", "--post"])

        assert result.exit_code == 0, result.output
        create.assert_called_once()
        record = JsonFileStore(root=tmp_path).load(42)
        assert record.findings[0].approved is True
        assert record.findings[0].posted is True

    def test_unwritable_reviews_dir_is_one_line_error(self, mocker, tmp_path, monkeypatch):
        create = self._setup(mocker, tmp_path, monkeypatch, self._finding_reviewer())
        (tmp_path / ".prsift").write_text("not a directory")

        result = CliRunner().invoke(main, ["review", "42", "--post"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Error: Could not write review record for PR #42" in result.output
        create.assert_not_called()

    def test_malformed_model_output_exits_one_without_record(self, mocker, tmp_path, monkeypatch):
        reviewer = MagicMock()
        reviewer.review.side_effect = NormalizationError("Failed to parse AI response as JSON (Expecting value)")
        create = self._setup(mocker, tmp_path, monkeypatch, reviewer)
        prompt = mocker.patch("click.prompt")

        result = CliRunner().invoke(main, ["review", "42", "--post"])

        assert result.exit_code == 1
        assert "Error: Failed to parse AI response as JSON" in result.output
        prompt.assert_not_called()
        create.assert_not_called()
        assert not (tmp_path / ".prsift").exists()


class TestReviewToRecord:
    def test_maps_every_field(self):
        finding = Finding(
            id=1, severity="warning", confidence=80, title="t", file="f.py", line=3, why="w", body="b", approved=True
        )
        review = Review(
            pr=PullRequestRef(7, "main", "b" * 40, "owner/repo"),
            findings=[finding],
            summary="Found 1 issues (0 critical, 1 warning, 0 suggestion)",
            reviewed_at="2026-01-01T00:00:00+00:00",
        )

        record = _review_to_record(review)

        assert record == ReviewRecord(
            pr=7,
            repo="owner/repo",
            base_branch="main",
            head_sha="b" * 40,
            reviewed_at="2026-01-01T00:00:00+00:00",
            summary="Found 1 issues (0 critical, 1 warning, 0 suggestion)",
            findings=[
                FindingRecord(
                    id=1, severity="warning", confidence=80, title="t", file="f.py", line=3, why="w", body="b",
                    approved=True,
                )
            ],
        )


# ---------------------------------------------------------------------------
# auth.py
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from prsift_cli.auth import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_gh_token_env_var_used(self, monkeypatch):
        from prsift_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GH_TOKEN", "gh-env-token")
        with patch("subprocess.run") as mock_run:
            assert resolve_github_token() == "gh-env-token"
        mock_run.assert_not_called()

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from prsift_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from prsift_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from prsift_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_returns_error(self, monkeypatch):
        from prsift_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            result = resolve_github_token()
        assert result is None


# ---------------------------------------------------------------------------
# _build_store
# ---------------------------------------------------------------------------


class TestBuildStore:
    def test_default_reviews_dir(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        store = _build_store({})
        assert isinstance(store, JsonFileStore)
        assert store.reviews_dir == tmp_path / ".prsift" / "reviews"

    def test_configured_reviews_dir(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        store = _build_store({"reviews_dir": "records"})
        assert store.reviews_dir == tmp_path / "records"


# ---------------------------------------------------------------------------
# history command
# ---------------------------------------------------------------------------


def _make_review_record(pr=1, reviewed_at="2026-01-01T10:00:00+00:00", posted=True):
    return ReviewRecord(
        pr=pr,
        repo="owner/repo",
        base_branch="main",
        head_sha="abcdef1234" + "0" * 30,
        reviewed_at=reviewed_at,
        summary="s",
        findings=[
            FindingRecord(
                id=1, severity="critical", confidence=90, title="t", file="src/auth.py", line=10, why="w", body="b",
                approved=True, posted=posted,
            ),
            FindingRecord(
                id=2, severity="warning", confidence=70, title="t", file="src/auth.py", line=12, why="w", body="b",
                approved=False,
            ),
        ],
    )


class TestHistoryCommand:
    def test_shows_table_when_records_exist(self, mocker):
        _, mock_store, _ = _patch_common(mocker)
        mock_store.list_reviews.return_value = [_make_review_record()]

        result = CliRunner().invoke(main, ["history"])

        assert result.exit_code == 0
        assert "#1" in result.output
        assert "abcdef1" in result.output

    def test_shows_empty_message_when_no_records(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["history"])

        assert result.exit_code == 0
        assert "No review records found" in result.output

    def test_filters_by_pr_number(self, mocker):
        _, mock_store, _ = _patch_common(mocker)
        mock_store.load.return_value = _make_review_record(pr=5)

        result = CliRunner().invoke(main, ["history", "--pr", "5"])

        mock_store.load.assert_called_once_with(5)
        mock_store.list_reviews.assert_not_called()
        assert "#5" in result.output

    def test_limit_applied(self, mocker):
        records = [_make_review_record(pr=i) for i in range(10)]
        _, mock_store, _ = _patch_common(mocker)
        mock_store.list_reviews.return_value = records

        result = CliRunner().invoke(main, ["history", "--limit", "3"])

        assert result.exit_code == 0
        assert result.output.count("#") == 3
        # Most recent first.
        assert "#9" in result.output
