"""CLI commands for certano.

Commands:
- quiz: Take an interactive quiz (works offline)
- sync: Deliver pending quiz results
- pending: List results waiting for delivery
- history: Show stored quiz results
- fetch-questions: Mirror the backend question set for offline use
- import-questions: Load a JSON question file into the offline snapshot
- stats: Show learning statistics, quests and badges
- errors: List questions to review
- serve: Run the reference Web API
"""

from __future__ import annotations

import asyncio
import json
import random
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from certano.backend.client import BackendError
from certano.config.app_config import load_app_config
from certano.config.log_setup import configure_logging
from certano.core.context import QuizContext
from certano.core.grader import Grade, Submission
from certano.core.questions import ALL_CHAPTERS, Question, load_questions
from certano.core.quiz_builder import EmptyQuizError
from certano.core.session import QuizSession

app = typer.Typer(
    name="certano",
    help="Offline-first quizzes with result synchronization.",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    configure_logging("debug" if verbose else "warning")


def _create_context(online: bool = True, seed: int | None = None) -> QuizContext:
    config = load_app_config(force_reload=True)
    return QuizContext.create(
        config=config,
        online=online,
        rng=random.Random(seed) if seed is not None else None,
    )


def _truncate(text: str, max_len: int = 60) -> str:
    text = " ".join(text.split())
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


# =============================================================================
# QUIZ COMMAND - Interactive flow
# =============================================================================


def _ask_numbers(prompt: str, n_options: int, multiple: bool) -> list[int] | None:
    """Ask for 1-based option numbers; returns None for 's' (skip)."""
    while True:
        raw = typer.prompt(prompt).strip().lower()
        if raw == "s":
            return None
        try:
            picks = [int(part) for part in raw.replace(" ", "").split(",") if part]
        except ValueError:
            console.print("[yellow]⚠ Enter option numbers[/yellow]")
            continue
        if not picks or any(p < 1 or p > n_options for p in picks):
            console.print(f"[yellow]⚠ Must be 1-{n_options}[/yellow]")
            continue
        if not multiple and len(picks) != 1:
            console.print("[yellow]⚠ Choose exactly one option[/yellow]")
            continue
        return picks


def _ask_choice(question: Question) -> Submission | None:
    for idx, option in enumerate(question.options, 1):
        console.print(f"  {idx}. {option.text}")
    multiple = question.type != "true_false" and len(question.correct_option_ids) > 1
    hint = "comma-separated, " if multiple else ""
    picks = _ask_numbers(f"Your answer ({hint}s to skip)", len(question.options), multiple)
    if picks is None:
        return None
    return Submission(selected_options=[question.options[p - 1].id for p in picks])


def _ask_matching(question: Question) -> Submission | None:
    rights = question.right_side_choices
    for idx, text in enumerate(rights, 1):
        console.print(f"  {idx}. {text}")
    selections: dict[str, str] = {}
    for pair in question.matching_pairs:
        picks = _ask_numbers(f"Match '{pair.left_text}'", len(rights), multiple=False)
        if picks is None:
            return None
        selections[pair.id] = rights[picks[0] - 1]
    return Submission(matching_selections=selections)


def _ask_fill_blank(question: Question) -> Submission | None:
    options = question.fill_blank_options
    for idx, option in enumerate(options, 1):
        console.print(f"  {idx}. {option.text}")
    blanks = question.blank_count or len(question.correct_fill_blank_ids) or 1
    chosen: list[str] = []
    for blank in range(1, blanks + 1):
        picks = _ask_numbers(f"Blank {blank}", len(options), multiple=False)
        if picks is None:
            return None
        chosen.append(options[picks[0] - 1].id)
    return Submission(fill_blank_answers=chosen)


def _ask_open(question: Question) -> Submission | None:
    raw = typer.prompt("Your answer (s to skip)").strip()
    if raw.lower() == "s":
        return None
    return Submission(user_answer=raw)


def _ask_question(session: QuizSession, question: Question) -> Submission | None:
    """Show a question and read the answer; None means skip."""
    console.print(
        f"\n[blue]Question {session.index + 1}/{len(session.questions)}[/blue]"
        f" [dim]{question.chapter}[/dim]"
    )
    console.print(f"[bold]{question.prompt}[/bold]")
    if question.media:
        console.print(f"[dim]Image:[/dim] {question.media}")
    if session.time_remaining is not None:
        console.print(f"[dim]Time left:[/dim] {int(session.time_remaining)}s")

    if question.is_self_assessed:
        return _ask_open(question)
    if question.type == "matching":
        return _ask_matching(question)
    if question.type == "fill_blank":
        return _ask_fill_blank(question)
    return _ask_choice(question)


def _show_grade(grade: Grade, show_explanation: bool) -> None:
    if grade.is_correct:
        console.print("[green]✓ Correct[/green]")
    elif grade.grading_path == "skipped":
        console.print("[yellow]⏭ Skipped[/yellow]")
    else:
        console.print("[red]✗ Incorrect[/red]")
        if grade.expected:
            console.print(f"[dim]Expected:[/dim] {', '.join(grade.expected)}")
    if show_explanation and grade.explanation:
        console.print(f"[dim]{grade.explanation}[/dim]")


async def _run_quiz(
    context: QuizContext,
    count: int | None,
    chapter: str,
    time_limit: int | None,
    allow_skip: bool | None,
    error_review: bool,
    probe: bool,
) -> QuizSession:
    try:
        if probe:
            await context.connectivity.check(context.client.is_available)
        return await _quiz_loop(context, count, chapter, time_limit, allow_skip, error_review)
    finally:
        await context.aclose()


async def _quiz_loop(
    context: QuizContext,
    count: int | None,
    chapter: str,
    time_limit: int | None,
    allow_skip: bool | None,
    error_review: bool,
) -> QuizSession:
    quiz_config = context.quiz_config(
        question_count=count,
        chapter=chapter,
        time_limit=time_limit,
        allow_skip=allow_skip,
        # Answers are revealed until the user moves on
        auto_advance_seconds=0,
    )
    session = await context.new_session(quiz_config, error_review=error_review)

    while not session.is_completed:
        question = session.current_question
        if question is None:
            break
        submission = _ask_question(session, question)
        await session.settle()
        if session.is_completed:
            console.print("[yellow]⚠ Time is up[/yellow]")
            break

        if submission is None:
            if not quiz_config.allow_skip:
                console.print("[yellow]⚠ Skipping is disabled for this quiz[/yellow]")
                continue
            _show_grade(await session.skip(), quiz_config.show_explanations)
            continue

        grade = await session.submit(submission)
        if grade.awaiting_self_assessment:
            if question.explanation:
                console.print(f"[dim]Reference:[/dim] {question.explanation}")
            correct = typer.confirm("Was your answer correct?")
            grade = await session.self_assess(correct)

        _show_grade(grade, quiz_config.show_explanations)
        await session.settle()
        if not session.is_completed:
            await session.next()

    # Run deferred stats updates
    await asyncio.sleep(0)
    return session


@app.command()
def quiz(
    count: int | None = typer.Option(None, "-n", "--count", help="Number of questions"),
    chapter: str = typer.Option(ALL_CHAPTERS, "-c", "--chapter", help="Chapter or 'all'"),
    time_limit: int | None = typer.Option(None, "--time-limit", help="Time limit in seconds"),
    allow_skip: bool | None = typer.Option(None, "--allow-skip/--no-skip", help="Allow skipping"),
    error_review: bool = typer.Option(False, "--errors", "-e", help="Review missed questions"),
    offline: bool = typer.Option(False, "--offline", help="Use the offline snapshot only"),
    seed: int | None = typer.Option(None, "--seed", help="Random seed"),
) -> None:
    """Take an interactive quiz.

    Results are stored locally and delivered when the backend is reachable.

    Example:
        certano quiz -n 10 -c "Chapter 3"
    """
    context = _create_context(online=not offline, seed=seed)

    try:
        session = asyncio.run(
            _run_quiz(context, count, chapter, time_limit, allow_skip, error_review, not offline)
        )
    except EmptyQuizError as e:
        console.print(f"[red]✗ {e}[/red]")
        console.print("  Run first: certano fetch-questions (or import-questions)")
        raise typer.Exit(code=1)

    attempt = session.attempt
    if attempt is None:
        console.print("[red]✗ Quiz ended without a result[/red]")
        raise typer.Exit(code=1)
    score = attempt.score
    passed = score.performance != "failed"
    color = "green" if passed else "red"

    header = (
        f"[bold]{score.accuracy}%[/bold] - [{color}]{score.performance}[/{color}]\n"
        f"Correct: {score.correct}/{score.answered} | XP: {score.xp}\n"
        f"Duration: {attempt.duration_seconds}s"
    )
    console.print(Panel(header, title=f"[bold]{attempt.id}[/bold]", expand=False))

    if attempt.synced:
        console.print("[green]✓[/green] Result delivered")
    else:
        console.print("[yellow]⚠ Result stored offline; run 'certano sync' when online[/yellow]")


# =============================================================================
# SYNC COMMANDS
# =============================================================================


async def _sync(context: QuizContext):
    try:
        online = await context.connectivity.check(context.client.is_available)
        if not online:
            return None
        return await context.sync_queue.flush()
    finally:
        await context.aclose()


async def _watch(context: QuizContext, interval: float) -> None:
    try:
        await context.connectivity.watch(context.client.is_available, interval)
    finally:
        await context.aclose()


@app.command()
def sync(
    watch: bool = typer.Option(
        False, "--watch", "-w", help="Keep probing and deliver on every reconnect"
    ),
) -> None:
    """Deliver pending quiz results to the backend."""
    # Start offline so a reachable backend is an online transition
    context = _create_context(online=False)

    if not context.sync_queue.available:
        console.print("[red]✗ Local store unavailable[/red]")
        raise typer.Exit(code=1)

    if watch:
        interval = context.config.sync.probe_interval_seconds
        console.print(
            f"[blue]Watching {context.config.backend.base_url}[/blue]"
            f" [dim](every {interval:.0f}s, Ctrl+C to stop)[/dim]"
        )
        try:
            asyncio.run(_watch(context, interval))
        except KeyboardInterrupt:
            pass
        console.print(f"[dim]{context.sync_queue.pending_count()} result(s) pending[/dim]")
        return

    pending = context.sync_queue.pending_count()
    result = asyncio.run(_sync(context))

    if result is None:
        console.print(f"[red]✗ Backend unreachable: {context.config.backend.base_url}[/red]")
        console.print(f"  {pending} result(s) remain pending")
        raise typer.Exit(code=1)

    remaining = context.sync_queue.pending_count()
    if remaining:
        console.print(f"[yellow]⚠ {remaining} result(s) could not be delivered[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Synced ({pending} delivered)")


@app.command()
def pending() -> None:
    """List quiz results waiting for delivery."""
    context = _create_context(online=False)
    results = context.sync_queue.pending()

    if not results:
        console.print("[green]✓[/green] Nothing pending")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Result", style="cyan")
    table.add_column("Finished")
    table.add_column("Chapter")
    table.add_column("Score", justify="right")

    for attempt in results:
        table.add_row(
            attempt.id,
            attempt.end_time.strftime("%Y-%m-%d %H:%M"),
            attempt.chapter or "-",
            f"{attempt.score.correct}/{attempt.score.answered}",
        )

    console.print(table)
    console.print(f"\n[dim]{len(results)} pending[/dim]")


@app.command()
def history(
    limit: int = typer.Option(20, "-n", "--limit", help="Maximum rows"),
) -> None:
    """Show stored quiz results, newest first."""
    context = _create_context(online=False)
    results = context.sync_queue.history(limit)

    if not results:
        console.print("[dim]No quiz results yet[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Result", style="cyan")
    table.add_column("Finished")
    table.add_column("Accuracy", justify="right")
    table.add_column("Performance")
    table.add_column("Synced", justify="center")

    for attempt in results:
        table.add_row(
            attempt.id,
            attempt.end_time.strftime("%Y-%m-%d %H:%M"),
            f"{attempt.score.accuracy}%",
            attempt.score.performance,
            "[green]yes[/green]" if attempt.synced else "[yellow]no[/yellow]",
        )

    console.print(table)
    console.print(
        f"\n[dim]{len(results)} result(s), {context.sync_queue.pending_count()} pending[/dim]"
    )


# =============================================================================
# QUESTION COMMANDS
# =============================================================================


async def _fetch(context: QuizContext) -> list[dict]:
    try:
        return await context.client.fetch_questions()
    finally:
        await context.aclose()


@app.command(name="fetch-questions")
def fetch_questions() -> None:
    """Mirror the backend question set into the offline snapshot."""
    context = _create_context()

    try:
        records = asyncio.run(_fetch(context))
    except BackendError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    stored = context.question_cache.save_offline_questions(records)
    console.print(f"[green]✓[/green] {stored} questions available offline")


@app.command(name="import-questions")
def import_questions(
    file: Path = typer.Argument(..., help="JSON file with a list of questions"),
) -> None:
    """Load a question file into the offline snapshot (replaces it)."""
    if not file.exists():
        console.print(f"[red]✗ File not found: {file}[/red]")
        raise typer.Exit(code=1)

    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ Invalid JSON: {e}[/red]")
        raise typer.Exit(code=1)

    records = data.get("questions", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        console.print("[red]✗ Expected a list of questions[/red]")
        raise typer.Exit(code=1)

    usable = load_questions(records)
    context = _create_context(online=False)
    stored = context.question_cache.save_offline_questions(records)

    skipped = len(records) - len(usable)
    console.print(f"[green]✓[/green] {stored} questions imported")
    if skipped:
        console.print(f"[yellow]⚠ {skipped} record(s) without id skipped[/yellow]")


# =============================================================================
# STATS COMMANDS
# =============================================================================


@app.command()
def stats() -> None:
    """Show learning statistics, quests and badges."""
    context = _create_context(online=False)
    store = context.stats
    user = store.user

    header = (
        f"Level [bold]{user.current_level}[/bold] | XP {user.total_xp}\n"
        f"Answered: {user.total_questions_answered} | Accuracy: {user.accuracy_rate}%\n"
        f"Streak: {user.current_streak} (best {user.longest_streak}) | "
        f"Weekly goal: {user.weekly_progress:.0f}%"
    )
    console.print(Panel(header, title="[bold]Statistics[/bold]", expand=False))

    if store.chapters:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Chapter", style="cyan")
        table.add_column("Answered", justify="right")
        table.add_column("Correct", justify="right")
        table.add_column("Progress", justify="right")
        for chapter_stats in sorted(store.chapters.values(), key=lambda c: c.name):
            table.add_row(
                chapter_stats.name,
                str(chapter_stats.total_questions),
                str(chapter_stats.correct_answers),
                f"{chapter_stats.progress}%",
            )
        console.print(table)

    quests = store.active_quests()
    if quests:
        console.print("\n[bold]Quests[/bold]")
        for quest in quests:
            console.print(
                f"  {quest.title}: {min(quest.current_progress, quest.target)}/{quest.target}"
                f" [dim](+{quest.reward.xp} XP)[/dim]"
            )

    completed = store.completed_quests()
    if completed:
        console.print(f"[dim]Completed quests: {', '.join(q.title for q in completed)}[/dim]")

    badges = store.unlocked_badges()
    if badges:
        console.print("\n[bold]Badges[/bold]")
        for badge in badges:
            console.print(f"  {badge.icon} {badge.name}")


@app.command()
def errors(
    chapter: str = typer.Option(ALL_CHAPTERS, "-c", "--chapter", help="Chapter or 'all'"),
    limit: int = typer.Option(20, "-n", "--limit", help="Maximum rows"),
) -> None:
    """List questions answered wrong, most errors first."""
    context = _create_context(online=False)
    entries = context.stats.error_questions(chapter, limit)

    if not entries:
        console.print("[green]✓[/green] No questions to review")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Question", style="cyan")
    table.add_column("Chapter")
    table.add_column("Errors", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Last error")

    for entry in entries:
        table.add_row(
            entry.question_id,
            _truncate(entry.chapter or "-", 30),
            str(entry.error_count),
            f"{entry.success_rate}%",
            entry.last_error_date[:10],
        )

    console.print(table)
    console.print("\n[dim]Practice them with:[/dim] certano quiz --errors")


# =============================================================================
# SERVER
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Port"),
) -> None:
    """Run the reference Web API."""
    import uvicorn

    configure_logging("info")
    uvicorn.run("certano.web.api:app", host=host, port=port)


if __name__ == "__main__":
    app()
