"""
Stats Page Rendering

One Jinja2 template serves both presentation variants; a ``ViewConfig``
decides the window length and which summary cards are shown.

The page is meant to be embedded in third-party pages through an iframe,
so it ships its own Content-Security-Policy (see ``build_embed_csp``).
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from jinja2 import Environment, FileSystemLoader, select_autoescape

from webhook_server.services.aggregator import AggregateResult

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

DEFAULT_POLL_MINUTES = 3


@dataclass(frozen=True)
class ViewConfig:
    """How one stats variant is computed and displayed."""
    name: str
    title: str
    subtitle: str
    window_days: Optional[int] = None
    show_dau_wau: bool = False
    show_time_present: bool = False


HISTORY_VIEW = ViewConfig(
    name="history",
    title="PV/UV 统计",
    subtitle="每日统计，自动每日刷新（可手动刷新）",
)

WINDOW_VIEW = ViewConfig(
    name="window",
    title="近 10 日 PV/UV 统计",
    subtitle="最近 10 天统计，自动每日刷新（可手动刷新）",
    window_days=10,
    show_dau_wau=True,
    show_time_present=True,
)


def with_window(view: ViewConfig, window_days: int) -> ViewConfig:
    """Copy of a windowed view using a different window length."""
    return ViewConfig(
        name=view.name,
        title=f"近 {window_days} 日 PV/UV 统计",
        subtitle=f"最近 {window_days} 天统计，自动每日刷新（可手动刷新）",
        window_days=window_days,
        show_dau_wau=view.show_dau_wau,
        show_time_present=view.show_time_present,
    )


def average_minutes_present(result: AggregateResult, poll_minutes: float = DEFAULT_POLL_MINUTES) -> float:
    """
    Estimate of the time a visitor spent on the page on the last charted day.

    The client reports a read every ``poll_minutes`` while the page is
    open; the estimate is lastDayPV / lastDayUV / poll_minutes.
    """
    if not result.pv_series or not result.uv_series:
        return 0
    last_pv, last_uv = result.pv_series[-1], result.uv_series[-1]
    if not last_uv or not poll_minutes:
        return 0
    return round(last_pv / last_uv / poll_minutes, 2)


def build_embed_csp(chart_library_url: str) -> str:
    """Content-Security-Policy that lets any http(s) origin frame the page."""
    parts = urlsplit(chart_library_url)
    chart_origin = f"{parts.scheme}://{parts.netloc}" if parts.netloc else ""
    script_src = "script-src 'self' 'unsafe-inline'" + (f" {chart_origin}" if chart_origin else "")
    return "; ".join([
        "default-src 'self'",
        script_src,
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data:",
        "font-src 'self' data:",
        "connect-src 'self'",
        "frame-ancestors http: https:",
    ])


class StatsRenderer:
    """Renders an ``AggregateResult`` as a self-contained HTML page."""

    def __init__(self, chart_library_url: str, poll_minutes: float = DEFAULT_POLL_MINUTES):
        self.chart_library_url = chart_library_url
        self.poll_minutes = poll_minutes
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    def render(self, document_id: str, result: AggregateResult, view: ViewConfig) -> str:
        template = self.env.get_template("doc_status.html")
        return template.render(
            document_id=document_id,
            title=f"文档 {document_id} - {view.title}",
            view=view,
            stats=result.to_payload(),
            poll_minutes=self.poll_minutes,
            time_present=average_minutes_present(result, self.poll_minutes),
            chart_library_url=self.chart_library_url,
        )
