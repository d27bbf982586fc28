"""CLI commands for the progression service.

Commands:
- init-db: Create the database schema
- save-grades / finalize: Grade entry and level evaluation
- enroll / renew / repeat / withdraw / promote / fail: Level ledger actions
- progress / history / awaiting: Read-only views
- sweep: Evaluate every attempt with unevaluated terminal grades
- serve: Run the Web API
"""

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from progression.config.app_config import get_db_path, load_app_config
from progression.core.errors import ProgressionError
from progression.core.grade_aggregator import ComponentScores
from progression.core.level_state import status_label
from progression.core.period_store import PeriodFeedback
from progression.core.progress_query import (
    get_student_history,
    get_student_progress,
    list_awaiting,
)
from progression.core.progression import (
    ProgressionController,
    RenewalRequest,
    get_controller,
)
from progression.db.database import init_db
from progression.db.level_attempts_repository import LevelAttempt

app = typer.Typer(
    name="progression",
    help="Grade finalization and level progression for language courses.",
    no_args_is_help=True,
)

console = Console()


def _controller() -> ProgressionController:
    """Open the configured database and return the controller."""
    init_db(get_db_path())
    return get_controller()


def _exit_with_error(e: ProgressionError) -> None:
    console.print(f"[red]✗ {e}[/red]")
    console.print(f"  [dim]code:[/dim] {e.code}")
    raise typer.Exit(code=1)


def _print_attempt(attempt: LevelAttempt, title: str) -> None:
    status = attempt.effective_status
    console.print(f"[green]✓ {title}[/green]")
    console.print(f"  [dim]attempt_id:[/dim] {attempt.attempt_id}")
    console.print(f"  [dim]nível:[/dim]      {attempt.level_name} (tentativa {attempt.attempt_number})")
    console.print(f"  [dim]estado:[/dim]     {status.value} - {status_label(status)}")
    if attempt.class_name:
        console.print(f"  [dim]turma:[/dim]      {attempt.class_name}")
    if attempt.final_grade is not None:
        console.print(f"  [dim]nota final:[/dim] {attempt.final_grade}")


# =============================================================================
# SETUP
# =============================================================================


@app.command(name="init-db")
def init_database() -> None:
    """Create the database and its tables."""
    db_path = get_db_path()
    init_db(db_path)
    config = load_app_config()
    console.print(f"[green]✓ Base de dados pronta: {db_path}[/green]")
    console.print(
        f"  [dim]regra:[/dim] {config.progression.pass_rule}, "
        f"nota mínima {config.progression.pass_mark}"
    )


# =============================================================================
# GRADES
# =============================================================================


@app.command(name="save-grades")
def save_grades(
    class_id: int = typer.Argument(..., help="Class ID"),
    student_id: int = typer.Argument(..., help="Student ID"),
    period: int = typer.Argument(..., help="Period number (1-based)"),
    test1: float = typer.Option(..., "--test1", help="Test 1 score (0-20)"),
    test2: float = typer.Option(..., "--test2", help="Test 2 score (0-20)"),
    practical: float = typer.Option(..., "--practical", help="Practical exam score (0-20)"),
    theory: float = typer.Option(..., "--theory", help="Theory exam score (0-20)"),
    strengths: str | None = typer.Option(None, "--strengths", help="Strengths feedback"),
    improvements: str | None = typer.Option(
        None, "--improvements", help="Improvements feedback"
    ),
    notes: str | None = typer.Option(None, "--notes", help="General notes"),
    recommendations: str | None = typer.Option(
        None, "--recommendations", help="Recommendations for the student"
    ),
    attendance: float | None = typer.Option(
        None, "--attendance", help="Attendance percentage (0-100)"
    ),
    submitted_by: int | None = typer.Option(
        None, "--submitted-by", help="Staff member ID entering the grades"
    ),
) -> None:
    """Save one student's grades for one period."""
    controller = _controller()
    try:
        result = controller.save_period_grades(
            class_id,
            student_id,
            period,
            ComponentScores(test1, test2, practical, theory),
            PeriodFeedback(
                strengths=strengths,
                improvements=improvements,
                notes=notes,
                recommendations=recommendations,
                attendance=attendance,
                submitted_by=submitted_by,
            ),
        )
    except ProgressionError as e:
        _exit_with_error(e)

    record = result.record
    console.print(f"[green]✓ Notas guardadas: período {record.period_number}[/green]")
    situation = "aprovado" if record.is_passing(controller.config.pass_mark) else "reprovado"
    console.print(f"  [dim]nota do período:[/dim] {record.final_score} ({situation})")
    if record.attendance is not None:
        console.print(f"  [dim]assiduidade:[/dim]    {record.attendance:.0f}%")
    console.print(f"  [dim]revisão:[/dim]        {record.revision}")

    if result.finalize is not None:
        color = "green" if result.finalize.transitioned else "dim"
        console.print(f"  [{color}]{result.finalize.message}[/{color}]")


@app.command()
def finalize(
    class_id: int = typer.Argument(..., help="Class ID"),
    student_id: int = typer.Argument(..., help="Student ID"),
) -> None:
    """Evaluate the level for one student (safe to repeat)."""
    controller = _controller()
    try:
        result = controller.finalize_level(class_id, student_id)
    except ProgressionError as e:
        _exit_with_error(e)

    color = "green" if result.transitioned else "yellow"
    console.print(f"[{color}]{result.message}[/{color}]")
    console.print(
        f"  [dim]estado:[/dim] {result.level_status.value} - "
        f"{status_label(result.level_status)}"
    )
    if result.final_grade is not None:
        console.print(f"  [dim]nota final:[/dim] {result.final_grade}")
    if result.avg_raw is not None:
        console.print(f"  [dim]média:[/dim] {result.avg_raw:.2f} ({result.periods_used} períodos)")
    if result.attendance is not None:
        console.print(f"  [dim]assiduidade:[/dim] {result.attendance:.2f}%")


@app.command()
def sweep() -> None:
    """Evaluate every open attempt whose terminal grades are unevaluated."""
    controller = _controller()
    summary = controller.finalize_pending()

    console.print(
        f"[green]✓ Avaliados: {summary.evaluated}[/green] | "
        f"transições: {summary.transitioned} | ignorados: {summary.skipped}"
    )
    for error in summary.errors:
        console.print(f"  [red]✗ {error}[/red]")
    if summary.errors:
        raise typer.Exit(code=1)


# =============================================================================
# LEVEL LEDGER
# =============================================================================


@app.command()
def enroll(
    student_id: int = typer.Argument(..., help="Student ID"),
    level_id: int = typer.Argument(..., help="Level ID"),
    class_id: int | None = typer.Option(None, "--class", "-c", help="Class ID"),
) -> None:
    """Start tracking a student at a level."""
    controller = _controller()
    try:
        attempt = controller.enroll(student_id, level_id, class_id)
    except ProgressionError as e:
        _exit_with_error(e)
    _print_attempt(attempt, "Matrícula registada")


@app.command()
def renew(
    student_id: int = typer.Argument(..., help="Student ID"),
    next_level_id: int = typer.Argument(..., help="Next level ID"),
    class_id: int = typer.Argument(..., help="Class ID in the next level"),
) -> None:
    """Open the next level for a student awaiting renewal."""
    controller = _controller()
    try:
        attempt = controller.renew(
            RenewalRequest(student_id=student_id, next_level_id=next_level_id, class_id=class_id)
        )
    except ProgressionError as e:
        _exit_with_error(e)
    _print_attempt(attempt, "Renovação concluída")


@app.command()
def repeat(
    student_id: int = typer.Argument(..., help="Student ID"),
    level_id: int = typer.Argument(..., help="Level ID"),
    class_id: int | None = typer.Option(None, "--class", "-c", help="Class ID"),
) -> None:
    """Open a new attempt at a level after failure."""
    controller = _controller()
    try:
        attempt = controller.repeat(student_id, level_id, class_id)
    except ProgressionError as e:
        _exit_with_error(e)
    _print_attempt(attempt, "Nova tentativa aberta")


@app.command()
def withdraw(
    student_id: int = typer.Argument(..., help="Student ID"),
    level_id: int = typer.Argument(..., help="Level ID"),
) -> None:
    """Close the open attempt as withdrawn."""
    controller = _controller()
    try:
        attempt = controller.withdraw(student_id, level_id)
    except ProgressionError as e:
        _exit_with_error(e)
    _print_attempt(attempt, "Desistência registada")


@app.command()
def promote(
    student_id: int = typer.Argument(..., help="Student ID"),
    level_id: int = typer.Argument(..., help="Level ID"),
    dest_class_id: int | None = typer.Option(
        None, "--class", "-c", help="Open the next level in this class now"
    ),
) -> None:
    """Pass a student in recovery."""
    controller = _controller()
    try:
        result = controller.promote(student_id, level_id, dest_class_id)
    except ProgressionError as e:
        _exit_with_error(e)
    _print_attempt(result.attempt, "Aluno aprovado")
    if result.next_attempt is not None:
        _print_attempt(result.next_attempt, "Próximo nível aberto")
    if result.course_completed:
        console.print("[bold green]✓ Curso concluído[/bold green]")


@app.command()
def fail(
    student_id: int = typer.Argument(..., help="Student ID"),
    level_id: int = typer.Argument(..., help="Level ID"),
) -> None:
    """Close the open attempt as failed."""
    controller = _controller()
    try:
        attempt = controller.fail(student_id, level_id)
    except ProgressionError as e:
        _exit_with_error(e)
    _print_attempt(attempt, "Reprovação registada")


# =============================================================================
# VIEWS
# =============================================================================


@app.command()
def progress(
    student_id: int = typer.Argument(..., help="Student ID"),
) -> None:
    """Show a student's progress in the current course."""
    controller = _controller()
    try:
        result = get_student_progress(student_id, controller.catalog)
    except ProgressionError as e:
        _exit_with_error(e)

    if not result.has_progress:
        console.print(f"[yellow]⚠ Sem dados de progresso para o aluno {student_id}[/yellow]")
        return

    current = result.current_level
    current_text = (
        f"{current.level_name} - {current.status_label}" if current else "sem nível atual"
    )
    header = (
        f"[bold]{result.course_name or result.course_id}[/bold]\n"
        f"Nível atual: {current_text}\n"
        f"Níveis concluídos: {result.levels_passed}/{result.total_levels} "
        f"([bold]{result.progress_percent}%[/bold])"
    )
    console.print(Panel(header, title=f"[bold]Aluno {student_id}[/bold]", expand=False))

    if not result.history:
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Nível", style="cyan")
    table.add_column("Tentativa", justify="center")
    table.add_column("Estado")
    table.add_column("Nota", justify="center")
    table.add_column("Fim")

    for entry in result.history:
        table.add_row(
            entry.level_name,
            f"{entry.attempt_number}/{entry.attempts_at_level}",
            status_label(entry.status),
            "-" if entry.final_grade is None else str(entry.final_grade),
            (entry.end_date or "")[:10],
        )

    console.print(table)


@app.command()
def history(
    student_id: int = typer.Argument(..., help="Student ID"),
) -> None:
    """List every level attempt of a student."""
    _controller()
    try:
        entries = get_student_history(student_id)
    except ProgressionError as e:
        _exit_with_error(e)

    if not entries:
        console.print(f"[yellow]⚠ Sem tentativas para o aluno {student_id}[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Curso", justify="center")
    table.add_column("Nível", style="cyan")
    table.add_column("Tentativa", justify="center")
    table.add_column("Estado")
    table.add_column("Nota", justify="center")

    for entry in entries:
        table.add_row(
            str(entry.course_id),
            entry.level_name,
            str(entry.attempt_number),
            status_label(entry.status),
            "-" if entry.final_grade is None else str(entry.final_grade),
        )

    console.print(table)


@app.command()
def awaiting(
    level_id: int = typer.Argument(..., help="Level ID"),
) -> None:
    """List students of a level awaiting renewal or in recovery."""
    controller = _controller()
    try:
        attempts = list_awaiting(level_id, controller.catalog)
    except ProgressionError as e:
        _exit_with_error(e)

    if not attempts:
        console.print("[dim]Nenhum aluno pendente[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Aluno", justify="center")
    table.add_column("Turma")
    table.add_column("Estado")
    table.add_column("Nota", justify="center")

    for attempt in attempts:
        table.add_row(
            str(attempt.student_id),
            attempt.class_name or "-",
            status_label(attempt.effective_status),
            "-" if attempt.evaluated_score is None else str(attempt.evaluated_score),
        )

    console.print(table)
    console.print(f"\n[dim]Total:[/dim] {len(attempts)}")


# =============================================================================
# SERVER
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API with uvicorn."""
    import uvicorn

    console.print(f"[blue]API em http://{host}:{port}[/blue]")
    uvicorn.run("progression.web.api:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
