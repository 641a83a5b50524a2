from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from learner_analytics.analytics.models import StudentAnalytics, analytics_to_dict
from learner_analytics.system import AnalyticsSystem
from learner_analytics.utils.logging import get_logger

app = typer.Typer(help="Learning analytics for practice history: record answers, track sessions, report progress.")
console = Console()
log = get_logger(__name__)


def _load_system(config: Optional[Path]) -> AnalyticsSystem:
    """Instantiate `AnalyticsSystem` with an optional config file."""
    return AnalyticsSystem.from_config(config)


def _minutes(value) -> str:
    return f"{value.total_seconds() / 60:.0f} min"


def _render_report(snapshot: StudentAnalytics) -> None:
    progress = snapshot.overall_progress
    streak = snapshot.study_streak
    console.print(f"[bold]Learner[/bold] {snapshot.learner_id}")
    console.print(
        f"Accuracy {progress.percentage:.1f}% | Level {progress.level} "
        f"({progress.experience_points} XP, {progress.next_level_progress:.0%} to next)"
    )
    console.print(
        f"Streak {streak.current_streak} days (longest {streak.longest_streak}) | "
        f"Velocity {snapshot.learning_velocity:+.0%}"
    )

    mastery = Table(title="Topic mastery")
    mastery.add_column("Topic")
    mastery.add_column("Mastery", justify="right")
    mastery.add_column("Answers", justify="right")
    for category, topic in snapshot.topic_analytics.items():
        mastery.add_row(
            category.display_name,
            f"{snapshot.topic_mastery[category]:.0f}%",
            str(topic.total_questions),
        )
    console.print(mastery)

    time_stats = snapshot.study_time_analytics
    console.print(
        f"Study time today {_minutes(time_stats.today_study_time)}, "
        f"this week {_minutes(time_stats.weekly_study_time)}, "
        f"this month {_minutes(time_stats.monthly_study_time)}; "
        f"most productive hour {time_stats.most_productive_hour:02d}:00"
    )

    if snapshot.strengths_and_weaknesses.strengths:
        console.print("Strengths: " + ", ".join(snapshot.strengths_and_weaknesses.strengths))
    if snapshot.strengths_and_weaknesses.weaknesses:
        console.print("Needs work: " + ", ".join(snapshot.strengths_and_weaknesses.weaknesses))

    if snapshot.recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for item in snapshot.recommendations:
            console.print(
                f"- [{item.priority.name.lower()}] {item.title} ({_minutes(item.estimated_time)}): "
                f"{item.description}"
            )


@app.command()
def record(
    learner_id: str = typer.Argument(...),
    question_id: str = typer.Argument(...),
    category: str = typer.Option(..., help="Topic category, e.g. addition or word_problems."),
    correct: bool = typer.Option(..., "--correct/--incorrect", help="Whether the answer was right."),
    response_ms: int = typer.Option(..., help="Response time in milliseconds."),
    difficulty: str = typer.Option("normal", help="easy, normal, genius or quantum."),
    grade: str = typer.Option("grade5", help="Grade level, e.g. kindergarten or grade3."),
    hints: int = typer.Option(0, help="Number of hints used."),
    mode: str = typer.Option("classic_quiz", help="Game mode tag."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
):
    """Record one answer attempt for a learner."""
    system = _load_system(config)
    event = system.service.record_performance(
        learner_id,
        question_id,
        category=category,
        difficulty=difficulty,
        grade_level=grade,
        is_correct=correct,
        response_time_ms=response_ms,
        hints_used=hints,
        game_mode=mode,
    )
    if event is None:
        console.print("[red]Event was not recorded; see log output.[/red]")
        raise typer.Exit(code=1)
    console.print(f"Recorded {event.id}")


@app.command("start-session")
def start_session(
    learner_id: str = typer.Argument(...),
    session_type: str = typer.Option("practice", "--type", help="Session type tag."),
    topic: Optional[List[str]] = typer.Option(None, help="Topic studied; repeat for several."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
):
    """Open a study session and print its id."""
    system = _load_system(config)
    console.print(system.service.start_session(learner_id, session_type, topic or []))


@app.command("end-session")
def end_session(
    learner_id: str = typer.Argument(...),
    session_id: str = typer.Argument(...),
    answered: int = typer.Option(..., help="Questions answered during the session."),
    correct: int = typer.Option(..., help="Correct answers during the session."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
):
    """Close an open study session with its final counts."""
    system = _load_system(config)
    if not system.service.end_session(learner_id, session_id, answered, correct):
        console.print("[red]Session was not closed; see log output.[/red]")
        raise typer.Exit(code=1)
    console.print(f"Closed {session_id}")


@app.command()
def seed(
    learner_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
):
    """Write starter history for a learner who has none yet."""
    system = _load_system(config)
    log.info("seed_requested", learner_id=learner_id)
    if system.service.ensure_seed_data(learner_id):
        console.print(f"Seeded starter history for {learner_id}")
    else:
        console.print(f"No seeding needed for {learner_id}")


@app.command()
def report(
    learner_id: str = typer.Argument(...),
    as_json: bool = typer.Option(False, "--json", help="Print the full snapshot as JSON."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
):
    """
    Compute and display the learner's analytics snapshot.

    Seeds starter history first for a learner with no data, then renders progress,
    mastery, streaks, study time and recommendations with Rich, or dumps every
    field as JSON.
    """
    system = _load_system(config)
    snapshot = system.service.get_analytics(learner_id)
    if as_json:
        console.print_json(json.dumps(analytics_to_dict(snapshot)))
        return
    _render_report(snapshot)


if __name__ == "__main__":
    app()
