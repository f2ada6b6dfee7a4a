"""
results_renderer.py

Pure rendering of polled results: (results, mode, roster) -> RenderOutput.
Produces rows for the results list and card updates for the racer cards;
no Qt, no state.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from racetimer.core.model import (
    CardState,
    LapResult,
    RaceMode,
    RaceResult,
    Racer,
    RacerCard,
    Result,
)
from racetimer.core.time_format import format_time

NO_RESULTS_TEXT = "No results yet..."
IN_PROGRESS_TEXT = "Race in progress..."

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}

RESULTS_TITLES = {
    RaceMode.RACE: "Race Results",
    RaceMode.LAP: "Lap Times",
}


@dataclass(frozen=True)
class ResultRow:
    position: str
    name: str
    time: str
    detail: str = ""


@dataclass(frozen=True)
class CardUpdate:
    racer_id: int
    card: RacerCard


@dataclass(frozen=True)
class RenderOutput:
    rows: Tuple[ResultRow, ...] = ()
    placeholder: Optional[str] = None
    card_updates: Tuple[CardUpdate, ...] = ()


def placeholder_output(text: str) -> RenderOutput:
    return RenderOutput(placeholder=text)


def results_title(mode: RaceMode) -> str:
    return RESULTS_TITLES[mode]


def position_label(position: int) -> str:
    return MEDALS.get(position, str(position))


def finished_card(position: int) -> RacerCard:
    return RacerCard(CardState.FINISHED, f"P{position}")


def _render_race(results: Sequence[RaceResult], roster_ids) -> RenderOutput:
    # sorted() is stable: duplicate positions keep fetch order
    ordered = sorted(results, key=lambda r: r.position)
    rows = tuple(
        ResultRow(position_label(r.position), r.name, format_time(r.time))
        for r in ordered
    )
    updates = tuple(
        CardUpdate(r.racer, finished_card(r.position))
        for r in results
        if r.racer in roster_ids
    )
    return RenderOutput(rows=rows, card_updates=updates)


def _render_laps(results: Sequence[LapResult]) -> RenderOutput:
    ordered = sorted(results, key=lambda r: r.timestamp, reverse=True)
    count = len(ordered)
    rows = tuple(
        ResultRow(
            str(count - index),
            r.name,
            f"Lap: {format_time(r.lap_time)}",
            f"Total: {format_time(r.timestamp)}",
        )
        for index, r in enumerate(ordered)
    )
    return RenderOutput(rows=rows)


def render_results(
    results: Sequence[Result],
    mode: RaceMode,
    roster: Sequence[Racer],
) -> RenderOutput:
    """
    Render *results* for *mode*.

    Race mode sorts by position, decorates the podium and marks each listed
    racer's card finished. Lap mode lists the most recent lap first, ranked
    ``N - index``, and leaves the cards alone. Results of the other mode's
    shape are skipped.
    """
    if mode == RaceMode.LAP:
        laps = [r for r in results if isinstance(r, LapResult)]
        if not laps:
            return placeholder_output(NO_RESULTS_TEXT)
        return _render_laps(laps)

    finishes = [r for r in results if isinstance(r, RaceResult)]
    if not finishes:
        return placeholder_output(NO_RESULTS_TEXT)
    return _render_race(finishes, {r.id for r in roster})
