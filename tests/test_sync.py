"""Tests for keeping each day's list and map in step."""

from planner.itinerary.mapper import FOCUS_ZOOM, HIGHLIGHT_Z_OFFSET, ROUTE_STYLE
from planner.itinerary.sync import EMPTY_MAP_TEXT, LONG_PRESS_SECONDS, FrameScheduler, ListMapSynchronizer


def test_render_builds_rows_and_maps(synchronizer, map_factory):
    view = synchronizer.views["d1"]
    assert [row.number for row in view.rows] == [1, 2, 3, 4, 5]
    assert view.rows[0].title == "Duomo"
    assert view.rows[0].href == "locations/duomo.html"
    assert map_factory.built == {"d1": 1, "d2": 1}


def test_markers_are_keyed_by_visit_index(synchronizer):
    # "trattoria" (index 1 of d2) has no coordinates
    layer = synchronizer.layers["d2"]
    assert sorted(layer.markers) == [0, 2]
    assert layer.markers[2].icon["html"].endswith(">3</div>")
    assert len(layer.lines) == 1


def test_day_without_coordinates_shows_placeholder(synchronizer):
    view = synchronizer.views["d3"]
    assert view.placeholder == EMPTY_MAP_TEXT
    assert not view.show_route_legend
    assert "d3" not in synchronizer.layers


def test_route_legend_needs_two_points(synchronizer):
    assert synchronizer.views["d1"].show_route_legend
    assert synchronizer.views["d2"].show_route_legend


def test_hover_row_highlights_matching_marker_only(synchronizer):
    assert synchronizer.hover_row("d1", 2, True)
    markers = synchronizer.layers["d1"].markers
    assert markers[2].highlighted
    assert markers[2].z_index_offset == HIGHLIGHT_Z_OFFSET
    assert [index for index, marker in markers.items() if marker.highlighted] == [2]

    synchronizer.hover_row("d1", 2, False)
    assert not any(marker.highlighted for marker in markers.values())


def test_hover_unlocated_row_has_no_effect(synchronizer):
    assert not synchronizer.hover_row("d2", 1, True)
    assert not any(marker.highlighted for marker in synchronizer.layers["d2"].markers.values())


def test_marker_hover_highlights_row(synchronizer):
    marker = synchronizer.marker("d2", 2)
    marker.fire("mouseover")
    rows = synchronizer.views["d2"].rows
    assert [row.highlighted for row in rows] == [False, False, True]
    marker.fire("mouseout")
    assert not rows[2].highlighted


def test_route_click_opens_walking_directions(synchronizer, opened):
    line = synchronizer.layers["d1"].lines[0]
    line.fire("click")
    assert len(opened) == 1
    assert opened[0].startswith("https://www.google.com/maps/dir/?api=1")
    assert "origin=43.7731,11.256" in opened[0]
    assert "travelmode=walking" in opened[0]


def test_route_hover_style(synchronizer):
    line = synchronizer.layers["d1"].lines[0]
    line.fire("mouseover")
    assert line.style["weight"] == 5
    line.fire("mouseout")
    assert line.style["weight"] == ROUTE_STYLE["weight"]
    assert line.style["opacity"] == ROUTE_STYLE["opacity"]


def test_activate_row_focuses_map(synchronizer):
    assert synchronizer.activate_row("d1", 1)
    widget = synchronizer.layers["d1"].widget
    assert widget.zoom == FOCUS_ZOOM
    assert widget.center == synchronizer.marker("d1", 1).position
    assert synchronizer.marker("d1", 1).popup_open


def test_long_press_counts_as_activation(editor, catalog, map_factory):
    now = [100.0]
    sync = ListMapSynchronizer(editor, catalog, map_factory=map_factory, clock=lambda: now[0])
    sync.render()
    sync.scheduler.flush()

    sync.press_row("d1", 0)
    now[0] += LONG_PRESS_SECONDS / 2
    assert not sync.release_row("d1", 0)

    sync.press_row("d1", 0)
    now[0] += LONG_PRESS_SECONDS
    assert sync.release_row("d1", 0)
    assert sync.marker("d1", 0).popup_open

    sync.press_row("d1", 0)
    sync.cancel_press()
    now[0] += LONG_PRESS_SECONDS
    assert not sync.release_row("d1", 0)


def test_day_change_rebuilds_only_that_day(editor, synchronizer, map_factory):
    editor.add_visit("d3", "duomo")
    assert synchronizer.views["d3"].rows[0].title == "Duomo"
    assert synchronizer.scheduler.pending == 1
    synchronizer.scheduler.flush()
    assert map_factory.built == {"d1": 1, "d2": 1, "d3": 1}
    assert synchronizer.views["d3"].placeholder is None


def test_rebuilds_coalesce_per_day(editor, synchronizer, map_factory):
    editor.move_visit("d1", 0, 1)
    editor.move_visit("d1", 1, 0)
    editor.edit_visit("d1", "duomo", note="twice")
    assert synchronizer.scheduler.flush() == 1
    assert map_factory.built["d1"] == 2


def test_old_map_is_removed_before_rebuild(editor, synchronizer, map_factory):
    old = synchronizer.layers["d1"].widget
    editor.remove_visit("d1", "boboli")
    synchronizer.scheduler.flush()
    assert old.removed
    assert len(synchronizer.layers["d1"].markers) == 4


def test_deleted_day_is_torn_down(editor, synchronizer):
    widget = synchronizer.layers["d2"].widget
    editor.delete_day("d2", confirm=lambda message: True)
    assert widget.removed
    assert "d2" not in synchronizer.layers
    assert "d2" not in synchronizer.views


def test_content_rendered_fires_with_day_ids(editor, synchronizer):
    seen = []
    synchronizer.on_content_rendered(seen.append)
    editor.rename_day("d1", "Firenze")
    synchronizer.render()
    assert seen == [["d1"], ["d1", "d2", "d3"]]


def test_map_data_for_page(synchronizer):
    data = synchronizer.map_data("d1")
    assert data["container"] == "trip-map-d1"
    assert [marker["index"] for marker in data["markers"]] == [0, 1, 2, 3, 4]
    assert data["route"][0]["directions"].startswith("https://www.google.com/maps/dir/")
    assert data["bounds"] is not None
    assert synchronizer.map_data("d3") is None


def test_frame_scheduler_runs_latest_callback_per_key():
    scheduler = FrameScheduler()
    ran = []
    scheduler.request("a", lambda: ran.append("first"))
    scheduler.request("a", lambda: ran.append("second"))
    scheduler.request("b", lambda: ran.append("b"))
    assert scheduler.pending == 2
    assert scheduler.flush() == 2
    assert ran == ["second", "b"]
    assert scheduler.pending == 0


def test_replacing_the_trip_tears_down_every_map(editor, synchronizer, map_factory):
    old_maps = list(map_factory.maps)
    editor.replace(editor.itinerary.copy())

    assert old_maps and all(widget.removed for widget in old_maps)
    assert synchronizer.layers == {}
    synchronizer.scheduler.flush()
    assert sorted(synchronizer.layers) == ["d1", "d2"]
    assert map_factory.built == {"d1": 2, "d2": 2}


def test_reset_tears_down_maps_of_the_edited_trip(editor, synchronizer, map_factory, itinerary):
    editor.add_day()
    old_maps = list(map_factory.maps)
    editor.reset_to_default(itinerary)

    assert all(widget.removed for widget in old_maps)
    assert synchronizer.layers == {}
