"""Generate the planner page: one list plus one map per day."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
import html as html_module

from .forms import EditVisitForm
from .sync import DayView, ListMapSynchronizer
from .templates import format_fetched_at, get_static_css, get_static_js, get_template

logger = logging.getLogger(__name__)


class PlannerWebView:
    """Render the synchronizer's current views into a standalone HTML page."""

    def __init__(self, synchronizer: ListMapSynchronizer, editable: bool = True):
        self.synchronizer = synchronizer
        self.editable = editable

    def render_page(
        self,
        fetched_at: Optional[datetime] = None,
        status: Optional[str] = None,
        error: Optional[str] = None,
    ) -> str:
        """Build the full page HTML for the editor's current itinerary."""
        itinerary = self.synchronizer.editor.itinerary
        views = self.synchronizer.render()
        self.synchronizer.scheduler.flush()

        map_data = {}
        for view in views:
            data = self.synchronizer.map_data(view.day_id)
            if data is not None:
                map_data[view.day_id] = data

        meta_parts = [f"{len(itinerary.days)} days", f"{itinerary.visit_count} locations"]
        updated = format_fetched_at(fetched_at)
        if updated:
            meta_parts.append(updated)
        meta_info = " • ".join(meta_parts)

        return get_template("planner.html").format(
            title=html_module.escape(itinerary.title or "Trip Planner"),
            meta_info=html_module.escape(meta_info),
            status_html=self._build_status_html(status, error),
            days_html="\n".join(self._build_day_html(view) for view in views),
            editable="true" if self.editable else "false",
            # "</" must not close the script element the JSON lives in
            map_data_json=json.dumps(map_data).replace("</", "<\\/"),
            trip_css=get_static_css("planner.css"),
            trip_js=get_static_js("planner.js"),
        )

    def generate(
        self,
        output_path: str | Path,
        fetched_at: Optional[datetime] = None,
        status: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Path:
        """Write the page to output_path."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.render_page(fetched_at=fetched_at, status=status, error=error))
        logger.info("[WEB_VIEW] Wrote %s", output_path)
        return output_path

    def _build_status_html(self, status: Optional[str], error: Optional[str]) -> str:
        if error:
            return (
                '<div class="trip-status trip-status-error">'
                f'{html_module.escape(error)} '
                '<button data-action="retry">Retry</button>'
                '</div>'
            )
        if status:
            return f'<div class="trip-status">{html_module.escape(status)}</div>'
        return ""

    def _build_edit_button(self, day_id: str, visit_id: str) -> str:
        """Edit button carrying the form's current values for the page's edit dialog."""
        form = EditVisitForm(self.synchronizer.editor, day_id, visit_id, self.synchronizer.catalog)
        fields = {name: ("" if value is None else value) for name, value in form.fields.items()}
        return (
            f'<button class="trip-location-edit" title="Edit" '
            f'data-title="{html_module.escape(form.title)}" '
            f'data-fields="{html_module.escape(json.dumps(fields))}" '
            f'data-editable="{",".join(form.editable)}">&#9998;</button>'
        )

    def _build_day_html(self, view: DayView) -> str:
        day_id = html_module.escape(view.day_id)
        lines = [f'<section class="trip-day" data-day-id="{day_id}">']
        lines.append('<div class="trip-day-header">')
        lines.append(
            f'<input class="trip-day-label" value="{html_module.escape(view.label)}" '
            f'aria-label="Day name">'
        )
        lines.append(f'<button class="trip-day-delete" title="Delete day">&times;</button>')
        lines.append('</div>')
        if self.editable:
            lines.append(
                '<div class="trip-day-add">'
                '<button class="trip-add-location-btn" data-action="add-location">+ Add location</button>'
                '<button class="trip-add-custom-btn" data-action="add-custom">+ Custom location</button>'
                '</div>'
            )

        lines.append('<ol class="trip-location-list">')
        for row in view.rows:
            classes = ["trip-location-item"]
            if not row.located:
                classes.append("trip-location-unlocated")
            if row.highlighted:
                classes.append("trip-location-highlighted")
            lines.append(
                f'<li class="{" ".join(classes)}" draggable="true" '
                f'data-location-index="{row.index}" '
                f'data-visit-id="{html_module.escape(row.visit_id)}">'
            )
            lines.append(f'<span class="trip-location-number">{row.number}</span>')
            lines.append(f'<span class="trip-location-time">{html_module.escape(row.time)}</span>')

            lines.append('<div class="trip-location-info">')
            title = html_module.escape(row.title)
            if row.href:
                lines.append(f'<a class="trip-location-title" href="{html_module.escape(row.href)}">{title}</a>')
            else:
                lines.append(f'<span class="trip-location-title">{title}</span>')
            if row.subtitle:
                lines.append(f'<span class="trip-location-subtitle">{html_module.escape(row.subtitle)}</span>')
            if row.note:
                lines.append(f'<span class="trip-location-comment">{html_module.escape(row.note)}</span>')
            if self.editable and not (row.time and row.note):
                lines.append('<span class="trip-location-quick">')
                if not row.time:
                    lines.append('<button class="trip-quick-add" data-focus="time">+time</button>')
                if not row.note:
                    lines.append('<button class="trip-quick-add" data-focus="note">+note</button>')
                lines.append('</span>')
            if row.booking_note:
                booking = html_module.escape(row.booking_note)
                if row.booking_link:
                    booking = f'<a href="{html_module.escape(row.booking_link)}" target="_blank">{booking}</a>'
                lines.append(f'<span class="trip-location-booking">{booking}</span>')
            lines.append('</div>')

            if row.map_link:
                lines.append(
                    f'<a class="trip-location-map-link" href="{html_module.escape(row.map_link)}" '
                    f'target="_blank">Map</a>'
                )
            else:
                lines.append('<span></span>')
            if self.editable:
                lines.append(self._build_edit_button(view.day_id, row.visit_id))
            lines.append(
                f'<button class="trip-location-remove" '
                f'data-visit-id="{html_module.escape(row.visit_id)}" title="Remove">&minus;</button>'
            )
            lines.append('</li>')
        lines.append('</ol>')

        lines.append(f'<div class="trip-day-map" id="trip-map-{day_id}">')
        if view.placeholder:
            lines.append(f'<div class="trip-map-empty">{html_module.escape(view.placeholder)}</div>')
        if view.show_route_legend:
            lines.append(
                '<div class="trip-route-legend">'
                '<span class="trip-route-legend-line"></span>Click route for directions'
                '</div>'
            )
        lines.append('</div>')
        lines.append('</section>')
        return "\n".join(lines)
