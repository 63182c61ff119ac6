"""Tests for the command line interface."""

from unittest.mock import patch

from typer.testing import CliRunner

from coachwatch import __version__
from coachwatch.cli import app
from coachwatch.core.constants import Team
from coachwatch.core.schemas import ViolationRecord

runner = CliRunner()


def _fake_analyze(violations):
    def fake(demo_path, on_violation=None, config=None):
        for violation in violations:
            on_violation(violation)
        return list(violations)
    return fake


class TestAnalyzeCommand:
    """Tests for the analyze command."""

    def test_banners_and_violation_lines(self, tmp_path):
        """Test output shape on a successful run."""
        demo = tmp_path / "match.dem"
        violations = [
            ViolationRecord(round_number=3, coaching_team=Team.TERRORIST, player_name="X", steam_id=76561198000000001),
            ViolationRecord(round_number=7, coaching_team=9, player_name="[bot] Y", steam_id=5),
        ]

        with patch("coachwatch.cli.analyze_demo", side_effect=_fake_analyze(violations)):
            result = runner.invoke(app, [str(demo)])

        assert result.exit_code == 0
        lines = result.stdout.splitlines()
        assert lines == [
            f"Analyze started: {demo}",
            "Round: 3, Busta: [T]X (76561198000000001)",
            "Round: 7, Busta: [UNKNOWN][bot] Y (5)",
            f"Analyze ended: {demo}",
        ]

    def test_no_violations(self, tmp_path):
        """Test only banners are printed for a clean demo."""
        demo = tmp_path / "clean.dem"
        with patch("coachwatch.cli.analyze_demo", side_effect=_fake_analyze([])):
            result = runner.invoke(app, [str(demo)])

        assert result.exit_code == 0
        assert result.stdout.splitlines() == [
            f"Analyze started: {demo}",
            f"Analyze ended: {demo}",
        ]

    def test_missing_file_exits_nonzero(self, tmp_path):
        """Test an unreadable path aborts with a non-zero status."""
        missing = tmp_path / "missing.dem"
        result = runner.invoke(app, [str(missing)])

        assert result.exit_code == 1
        assert "Analyze ended" not in result.stdout

    def test_decode_error_keeps_reported_lines(self, tmp_path):
        """Test violations printed before a decode failure stay in the output."""
        demo = tmp_path / "broken.dem"
        violation = ViolationRecord(round_number=1, coaching_team=Team.CT, player_name="Z", steam_id=9)

        def fail_midway(demo_path, on_violation=None, config=None):
            on_violation(violation)
            raise RuntimeError("corrupt packet")

        with patch("coachwatch.cli.analyze_demo", side_effect=fail_midway):
            result = runner.invoke(app, [str(demo)])

        assert result.exit_code == 1
        assert "Round: 1, Busta: [CT]Z (9)" in result.stdout
        assert "Analyze ended" not in result.stdout

    def test_version(self):
        """Test --version prints and exits."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout
