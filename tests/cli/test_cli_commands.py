"""Tests for the `tutor` CLI commands."""

from unittest.mock import patch

from typer.testing import CliRunner

from tutoring.cli.commands import app
from tutoring.llm.client import LLMError

runner = CliRunner()


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestExtractCommand:
    """Tests for tutor extract."""

    def test_extract_text_file(self, tmp_path):
        """Text files are extracted and printed."""
        path = _write(tmp_path, "hw.txt", "1. Seven times eight is fifty six")

        result = runner.invoke(app, ["extract", str(path)])

        assert result.exit_code == 0
        assert "method:" in result.stdout
        assert "fifty six" in result.stdout

    def test_extract_no_text(self, tmp_path):
        """--no-text prints only the metrics."""
        path = _write(tmp_path, "hw.txt", "1. Seven times eight is fifty six")

        result = runner.invoke(app, ["extract", str(path), "--no-text"])

        assert result.exit_code == 0
        assert "fifty six" not in result.stdout

    def test_extract_missing_file(self, tmp_path):
        """A missing file exits with code 1."""
        result = runner.invoke(app, ["extract", str(tmp_path / "nope.pdf")])

        assert result.exit_code == 1
        assert "File not found" in result.stdout

    def test_extract_unsupported_type(self, tmp_path):
        """Unsupported extensions exit with code 1."""
        path = _write(tmp_path, "data.csv", "a,b")

        result = runner.invoke(app, ["extract", str(path)])

        assert result.exit_code == 1
        assert "Unsupported file type" in result.stdout


class TestAnalyzeCommand:
    """Tests for tutor analyze."""

    def test_analyze_with_llm(self, tmp_path, mock_llm_client):
        """The LLM result is printed with score and topics."""
        worksheet = _write(tmp_path, "hw.txt", "1. 1/2 + 1/3 = 2/5")
        key = _write(tmp_path, "key.txt", "1. 5/6")

        with patch("tutoring.cli.commands.build_default_client", return_value=mock_llm_client):
            result = runner.invoke(app, ["analyze", str(worksheet), str(key)])

        assert result.exit_code == 0
        assert "Score: 72/100" in result.stdout
        assert "Fractions" in result.stdout
        prompt = mock_llm_client.chat.call_args.kwargs["messages"][-1].content
        assert "5/6" in prompt

    def test_analyze_without_client(self, tmp_path):
        """Without an API key the sample result is shown."""
        worksheet = _write(tmp_path, "hw.txt", "1. 1/2 + 1/3 = 2/5")

        result = runner.invoke(app, ["analyze", str(worksheet)])

        assert result.exit_code == 0
        assert "No LLM API key configured" in result.stdout
        assert "Score: 88/100" in result.stdout

    def test_analyze_failure_without_fallback(self, tmp_path, mock_llm_client):
        """--no-mock-fallback turns an LLM error into exit code 1."""
        worksheet = _write(tmp_path, "hw.txt", "1. 1/2 + 1/3 = 2/5")
        mock_llm_client.chat.side_effect = LLMError("provider down")

        with patch("tutoring.cli.commands.build_default_client", return_value=mock_llm_client):
            result = runner.invoke(app, ["analyze", str(worksheet), "--no-mock-fallback"])

        assert result.exit_code == 1
        assert "Analysis failed" in result.stdout


class TestQuestionsCommand:
    """Tests for tutor questions."""

    def test_questions_from_llm(self, mock_llm_client):
        """Generated questions are printed in a table."""
        with patch("tutoring.cli.commands.build_default_client", return_value=mock_llm_client):
            result = runner.invoke(app, ["questions", "Fractions", "Word problems"])

        assert result.exit_code == 0
        assert "Practice questions" in result.stdout
        mock_llm_client.simple_json.assert_called_once()

    def test_questions_placeholder_without_client(self):
        """Without an API key placeholder questions are printed."""
        result = runner.invoke(app, ["questions", "Fractions"])

        assert result.exit_code == 0
        assert "using placeholders" in result.stdout
        assert "Fractions" in result.stdout

    def test_questions_blank_topics(self):
        """Blank topics exit with code 1."""
        result = runner.invoke(app, ["questions", " "])

        assert result.exit_code == 1
        assert "No weak topics found" in result.stdout


class TestCheckCommand:
    """Tests for tutor check."""

    def test_check_reports_missing_keys(self):
        """With no secrets the config table shows them missing."""
        result = runner.invoke(app, ["check"])

        assert result.exit_code == 0
        assert "missing" in result.stdout
        assert "LLM not reachable" in result.stdout

    def test_check_reports_reachable_llm(self, mock_llm_client):
        """A reachable client is reported."""
        with patch("tutoring.cli.commands.build_default_client", return_value=mock_llm_client):
            result = runner.invoke(app, ["check"])

        assert result.exit_code == 0
        assert "LLM reachable" in result.stdout
