"""
Cosmetic progress for the analyzing and generating stages.

Progress is derived, never stored: it is a function of the time spent in the
stage and of whether the backend call has settled. Timed steps advance on a
fixed clock; the last step has no duration and creeps towards, but never
reaches, its ceiling until the real answer arrives.
"""
import html
import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProgressStep:
    id: str
    title: str
    description: str
    duration: float  # seconds; 0 means "until the backend answers"


@dataclass(frozen=True)
class ProgressPlan:
    steps: tuple[ProgressStep, ...]
    running_status: str
    waiting_status: str
    done_status: str
    linear_duration: float
    linear_target: float = 95.0
    overall_ceiling: float = 97.5
    last_step_ramp: float = 2.0
    last_step_mark: float = 99.0
    last_step_ceiling: float = 99.6
    tail_seconds: float = 20.0

    @property
    def timed_duration(self) -> float:
        return sum(step.duration for step in self.steps[:-1])


@dataclass(frozen=True)
class ProgressSnapshot:
    overall: float
    current_step: int
    step_progress: float
    completed: tuple[str, ...]
    status: str
    settled: bool = False


ANALYSIS_PLAN = ProgressPlan(
    steps=(
        ProgressStep("scan", "Scanning Your Space", "Analyzing image composition and identifying key elements...", 1.0),
        ProgressStep("features", "Identifying Features", "Detecting existing structures, plants, and landscape elements...", 1.0),
        ProgressStep("environment", "Analyzing Environment", "Assessing lighting conditions, space dimensions, and soil type...", 1.0),
        ProgressStep("ai_processing", "AI Processing", "Working out what this space could become...", 1.0),
        ProgressStep("plant_selection", "Plant Recommendations", "Selecting plants that suit the climate and conditions...", 1.0),
        ProgressStep("design_generation", "Preparing Your Report", "Putting the analysis together...", 0.0),
    ),
    running_status="Analyzing your space...",
    waiting_status="AI is finishing your personalized analysis...",
    done_status="Analysis complete!",
    linear_duration=5.0,
)

GENERATION_PLAN = ProgressPlan(
    steps=(
        ProgressStep("style", "Applying Design Style", "Applying the selected landscape style to your space...", 2.0),
        ProgressStep("layout", "Adjusting Layout Structure", "Optimizing the layout for your outdoor space...", 2.0),
        ProgressStep("details", "Enhancing Details", "Refining plants, surfaces, and accessories...", 2.0),
        ProgressStep("final", "Final Rendering", "Rendering the final design...", 0.0),
    ),
    running_status="Generating your landscape design...",
    waiting_status="Rendering the final image...",
    done_status="Generation complete!",
    linear_duration=5.0,
)


def _approach(start: float, ceiling: float, seconds: float, tail: float) -> float:
    """Rises from start towards ceiling without reaching it."""
    return start + (ceiling - start) * (1.0 - math.exp(-seconds / tail))


def snapshot(plan: ProgressPlan, elapsed: float, settled: bool = False) -> ProgressSnapshot:
    """
    Progress for a stage that has been active for `elapsed` seconds.

    Args:
        plan: Step plan for the stage
        elapsed: Seconds since the stage was entered
        settled: True once the backend call has returned (success or failure)

    Returns:
        ProgressSnapshot; overall is non-decreasing in elapsed and is 100 only when settled
    """
    last = len(plan.steps) - 1
    if settled:
        return ProgressSnapshot(
            overall=100.0,
            current_step=last,
            step_progress=100.0,
            completed=tuple(step.id for step in plan.steps),
            status=plan.done_status,
            settled=True,
        )

    elapsed = max(0.0, elapsed)

    remaining = elapsed
    current = last
    step_progress = 0.0
    for index, step in enumerate(plan.steps[:-1]):
        if remaining < step.duration:
            current = index
            step_progress = remaining / step.duration * 100.0
            break
        remaining -= step.duration
    else:
        if remaining < plan.last_step_ramp:
            step_progress = remaining / plan.last_step_ramp * plan.last_step_mark
        else:
            step_progress = _approach(
                plan.last_step_mark,
                plan.last_step_ceiling,
                remaining - plan.last_step_ramp,
                plan.tail_seconds,
            )

    if elapsed < plan.linear_duration:
        overall = elapsed / plan.linear_duration * plan.linear_target
    else:
        overall = _approach(
            plan.linear_target,
            plan.overall_ceiling,
            elapsed - plan.linear_duration,
            plan.tail_seconds,
        )

    return ProgressSnapshot(
        overall=min(overall, plan.overall_ceiling),
        current_step=current,
        step_progress=min(step_progress, plan.last_step_ceiling if current == last else 100.0),
        completed=tuple(step.id for step in plan.steps[:current]),
        status=plan.waiting_status if current == last else plan.running_status,
    )


class ProgressTracker:
    """
    Keeps the displayed overall value from ever going backwards within a stage.
    """

    def __init__(self):
        self._stage: Optional[str] = None
        self._overall = 0.0

    def update(self, stage: str, current: ProgressSnapshot) -> ProgressSnapshot:
        if stage != self._stage:
            self._stage = stage
            self._overall = 0.0
        self._overall = max(self._overall, current.overall)
        if self._overall == current.overall:
            return current
        return ProgressSnapshot(
            overall=self._overall,
            current_step=current.current_step,
            step_progress=current.step_progress,
            completed=current.completed,
            status=current.status,
            settled=current.settled,
        )


def render_progress_html(plan: ProgressPlan, current: ProgressSnapshot, title: str = "") -> str:
    """HTML panel: overall bar, percentage and the step list."""
    rows = []
    for index, step in enumerate(plan.steps):
        if step.id in current.completed:
            marker, color = "✅", "#2f7d32"
        elif index == current.current_step:
            marker, color = "⏳", "#d97757"
        else:
            marker, color = "○", "#aaa"
        bar = ""
        if index == current.current_step and step.id not in current.completed:
            bar = (
                f'<div style="height:4px;background:#eee;border-radius:2px;margin-top:4px;">'
                f'<div style="height:4px;width:{current.step_progress:.1f}%;background:{color};border-radius:2px;"></div></div>'
            )
        rows.append(
            f'<div style="display:flex;gap:10px;padding:6px 0;">'
            f'<span style="color:{color};">{marker}</span>'
            f'<div style="flex:1;"><strong>{html.escape(step.title)}</strong>'
            f'<div style="font-size:0.85rem;color:#666;">{html.escape(step.description)}</div>{bar}</div></div>'
        )

    heading = f"<h3 style='margin:0 0 0.5rem 0;'>{html.escape(title)}</h3>" if title else ""
    return (
        f'<div class="progress-card">{heading}'
        f'<p style="color:#666;margin:0 0 0.5rem 0;">{html.escape(current.status)}</p>'
        f'<div style="height:10px;background:#eee;border-radius:5px;">'
        f'<div style="height:10px;width:{current.overall:.1f}%;background:#2f7d32;border-radius:5px;"></div></div>'
        f'<p style="font-size:0.8rem;color:#888;margin:4px 0 1rem 0;">{round(current.overall)}% Complete</p>'
        f'{"".join(rows)}</div>'
    )
