"""Tests for the progression CLI."""

from typer.testing import CliRunner

from progression.cli.commands import app


runner = CliRunner()

SCORES = ["--test1", "{s}", "--test2", "{s}", "--practical", "{s}", "--theory", "{s}"]


def _save(class_id, student_id, period, score):
    args = [a.format(s=score) for a in SCORES]
    return runner.invoke(
        app, ["save-grades", str(class_id), str(student_id), str(period), *args]
    )


class TestSetup:
    """Tests for init-db."""

    def test_init_db_creates_database(self, app_env):
        result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0
        assert (app_env / "test.db").exists()
        assert "terminal" in result.stdout


class TestGradeCommands:
    """Tests for save-grades, finalize and sweep."""

    def test_save_grades_prints_period_score(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "--class", "101"])

        result = _save(101, 1, 1, 13)

        assert result.exit_code == 0
        assert "período 1" in result.stdout
        assert "13" in result.stdout
        assert "(aprovado)" in result.stdout

    def test_save_grades_with_attendance(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "--class", "101"])
        args = [a.format(s=8) for a in SCORES]

        result = runner.invoke(
            app,
            ["save-grades", "101", "1", "2", *args, "--attendance", "85", "--notes", "Faltou ao teste"],
        )

        assert result.exit_code == 0
        assert "(reprovado)" in result.stdout
        assert "85%" in result.stdout

    def test_save_grades_invalid_attendance(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "--class", "101"])
        args = [a.format(s=12) for a in SCORES]

        result = runner.invoke(app, ["save-grades", "101", "1", "1", *args, "--attendance", "150"])

        assert result.exit_code == 1
        assert "validation_error" in result.stdout

    def test_terminal_save_reports_transition(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "-c", "101"])

        result = _save(101, 1, 4, 9)

        assert result.exit_code == 0
        assert "recovery" in result.stdout.lower()

    def test_invalid_score_exits_with_error(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "-c", "101"])

        result = _save(101, 1, 1, 25)

        assert result.exit_code == 1
        assert "validation_error" in result.stdout

    def test_finalize_twice(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "-c", "101"])
        _save(101, 1, 4, 15)

        result = runner.invoke(app, ["finalize", "101", "1"])

        assert result.exit_code == 0
        assert "awaiting_renewal" in result.stdout

    def test_finalize_not_enrolled(self, app_env):
        result = runner.invoke(app, ["finalize", "101", "5"])

        assert result.exit_code == 1
        assert "not_found" in result.stdout

    def test_sweep_without_pending_work(self, app_env):
        result = runner.invoke(app, ["sweep"])

        assert result.exit_code == 0
        assert "Avaliados: 0" in result.stdout


class TestLedgerCommands:
    """Tests for enroll, renew, withdraw and views."""

    def test_enroll(self, app_env):
        result = runner.invoke(app, ["enroll", "3", "11", "--class", "101"])

        assert result.exit_code == 0
        assert "Matrícula registada" in result.stdout
        assert "in_progress" in result.stdout

    def test_renew_after_pass(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "-c", "101"])
        _save(101, 1, 4, 16)

        result = runner.invoke(app, ["renew", "1", "12", "102"])

        assert result.exit_code == 0
        assert "Renovação concluída" in result.stdout
        assert "Nível 2" in result.stdout

    def test_promote_into_next_class(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "-c", "101"])
        _save(101, 1, 4, 8)

        result = runner.invoke(app, ["promote", "1", "11", "--class", "102"])

        assert result.exit_code == 0
        assert "Próximo nível aberto" in result.stdout
        assert "Nível 2" in result.stdout

    def test_promote_last_level(self, app_env):
        runner.invoke(app, ["enroll", "1", "15", "-c", "105"])
        _save(105, 1, 4, 8)

        result = runner.invoke(app, ["promote", "1", "15"])

        assert result.exit_code == 0
        assert "Curso concluído" in result.stdout

    def test_withdraw_without_attempt(self, app_env):
        result = runner.invoke(app, ["withdraw", "1", "11"])

        assert result.exit_code == 1

    def test_progress_and_history(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "-c", "101"])
        _save(101, 1, 4, 16)

        progress = runner.invoke(app, ["progress", "1"])
        history = runner.invoke(app, ["history", "1"])

        assert progress.exit_code == 0
        assert "20%" in progress.stdout
        assert history.exit_code == 0
        assert "Nível 1" in history.stdout

    def test_progress_without_data(self, app_env):
        result = runner.invoke(app, ["progress", "42"])

        assert result.exit_code == 0
        assert "Sem dados" in result.stdout

    def test_awaiting(self, app_env):
        runner.invoke(app, ["enroll", "1", "11", "-c", "101"])
        _save(101, 1, 4, 16)

        result = runner.invoke(app, ["awaiting", "11"])

        assert result.exit_code == 0
        assert "Total:" in result.stdout
