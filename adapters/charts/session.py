"""
Chart session: the rendering layer's state, owned by one dashboard view.

Holds the registry of rendered chart specs, the report period, display
settings, the crosshair shared by all charts and timeline playback. The
scoring core never sees any of it; callers pass the session by reference.
"""

import copy
import math
from collections.abc import Mapping, Sequence
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field

from healthdash.services.visualization import REPORT_PERIODS, ChartSpec, report_charts

logger = structlog.get_logger(__name__)


class ChartDisplayConfig(BaseModel):
    """User-adjustable display settings applied to every registered chart."""

    legend_show: bool = True
    legend_clickable: bool = True
    tension: float = Field(default=0.4, ge=0.0, le=1.0)
    theme: Literal["default", "high_contrast", "colorblind"] = "default"
    units: dict[str, str] = Field(default_factory=lambda: {"bp": "mmHg", "bs": "mmol/L"})
    grid_show: bool = True
    grid_opacity: float = Field(default=0.2, ge=0.0, le=1.0)
    animation_enabled: bool = True
    animation_duration_ms: int = Field(default=250, ge=0)


class PlaybackState(BaseModel):
    """Timeline playback over the report period, one step per day."""

    is_playing: bool = False
    current_index: int = Field(default=0, ge=0)
    speed: int = Field(default=1, ge=1, le=8)

    @property
    def step_interval_seconds(self) -> float:
        return 1.0 / self.speed


class ChartSession:
    """
    Per-view chart state.

    Rendering a chart under an id that is already registered replaces the
    previous spec, the way a canvas is destroyed before it is redrawn.
    """

    def __init__(self, report_days: int = 7, config: ChartDisplayConfig | None = None) -> None:
        self._check_period(report_days)
        self.report_days = report_days
        self.config = config or ChartDisplayConfig()
        self.playback = PlaybackState()
        self.crosshair_index: int | None = None
        self.charts: dict[str, ChartSpec] = {}
        self.logger = logger.bind(component="chart_session")

    @staticmethod
    def _check_period(days: int) -> None:
        if days not in REPORT_PERIODS:
            raise ValueError(f"report period must be one of {REPORT_PERIODS}, got {days}")

    # -- registry -------------------------------------------------------------

    def render(self, spec: ChartSpec) -> ChartSpec:
        """Apply the display config to ``spec`` and register it."""
        if spec.chart_id in self.charts:
            self.logger.debug("chart_replaced", chart_id=spec.chart_id)
        rendered = self._apply_config(spec)
        self.charts[spec.chart_id] = rendered
        return rendered

    def get(self, chart_id: str) -> ChartSpec | None:
        return self.charts.get(chart_id)

    def destroy(self, chart_id: str) -> None:
        self.charts.pop(chart_id, None)

    def destroy_all(self) -> None:
        self.charts.clear()
        self.crosshair_index = None

    def render_report(self, records: Sequence[Mapping[str, Any]]) -> list[ChartSpec]:
        """Render the seven report charts for the current period."""
        rendered = [self.render(spec) for spec in report_charts(records, self.report_days)]
        self.logger.info("report_rendered", days=self.report_days, charts=len(rendered))
        return rendered

    def set_report_days(
        self, days: int, records: Sequence[Mapping[str, Any]]
    ) -> list[ChartSpec]:
        """Switch the report period, reset playback and redraw the report."""
        self._check_period(days)
        self.report_days = days
        self.reset_playback()
        return self.render_report(records)

    # -- display config -------------------------------------------------------

    def update_config(self, **changes: Any) -> ChartDisplayConfig:
        self.config = ChartDisplayConfig.model_validate(
            {**self.config.model_dump(), **changes}
        )
        self._reapply()
        return self.config

    def reset_config(self) -> ChartDisplayConfig:
        self.config = ChartDisplayConfig()
        self._reapply()
        return self.config

    def _reapply(self) -> None:
        self.charts = {chart_id: self._apply_config(spec) for chart_id, spec in self.charts.items()}

    def _apply_config(self, spec: ChartSpec) -> ChartSpec:
        config = self.config
        options = copy.deepcopy(spec.options)

        legend = options.setdefault("plugins", {}).setdefault("legend", {})
        legend["display"] = config.legend_show
        legend["clickable"] = config.legend_clickable

        if spec.type != "doughnut":
            grid = {
                "display": config.grid_show,
                "color": f"rgba(148,163,184,{config.grid_opacity})",
            }
            scales = options.setdefault("scales", {})
            for axis in ("x", "y"):
                scales.setdefault(axis, {})["grid"] = dict(grid)

        options["animation"] = {
            "duration": config.animation_duration_ms if config.animation_enabled else 0
        }

        datasets = [
            dataset.model_copy(update={"styling": {**dataset.styling, "tension": config.tension}})
            if "tension" in dataset.styling
            else dataset
            for dataset in spec.data.datasets
        ]
        data = spec.data.model_copy(update={"datasets": datasets})
        return spec.model_copy(update={"options": options, "data": data})

    # -- crosshair ------------------------------------------------------------

    def sync_crosshair(self, index: int) -> int:
        """Point every chart's crosshair at one day of the report period."""
        self.crosshair_index = max(0, min(index, self.report_days - 1))
        return self.crosshair_index

    def clear_crosshair(self) -> None:
        self.crosshair_index = None

    # -- playback -------------------------------------------------------------

    def play(self) -> None:
        if self.playback.is_playing:
            return
        self.playback.is_playing = True
        self.logger.debug("playback_started", index=self.playback.current_index)

    def pause(self) -> None:
        self.playback.is_playing = False
        self.clear_crosshair()

    def toggle(self) -> bool:
        if self.playback.is_playing:
            self.pause()
        else:
            self.play()
        return self.playback.is_playing

    def step(self) -> bool:
        """
        Advance playback by one day.

        Returns False (and stops) once the end of the period is reached.
        """
        if not self.playback.is_playing:
            return False
        next_index = self.playback.current_index + 1
        if next_index >= self.report_days:
            self.pause()
            return False
        self.playback.current_index = next_index
        self.sync_crosshair(next_index)
        return True

    def seek(self, fraction: float) -> int:
        """Jump to a position on the progress bar, ``fraction`` in [0, 1]."""
        index = math.floor(fraction * (self.report_days - 1))
        self.playback.current_index = max(0, min(index, self.report_days - 1))
        self.sync_crosshair(self.playback.current_index)
        return self.playback.current_index

    def set_speed(self, speed: int) -> None:
        self.playback = PlaybackState.model_validate({**self.playback.model_dump(), "speed": speed})

    def reset_playback(self) -> None:
        self.pause()
        self.playback.current_index = 0

    @property
    def progress(self) -> float:
        """Playback progress in percent."""
        return self.playback.current_index / max(self.report_days - 1, 1) * 100
