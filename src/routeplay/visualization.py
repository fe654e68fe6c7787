#!/usr/bin/env python3
"""
Playback visualization using folium maps.
"""

from datetime import datetime
import logging
import argparse
import folium
from folium.template import Template

from .engine import DEFAULT_RATE_MS, PlaybackEngine, TelemetrySnapshot
from .geometry import Sample

logger = logging.getLogger(__name__)


class TelemetryLegend(folium.MacroElement):
    """Vehicle dashboard panel showing the telemetry of a snapshot."""

    def __init__(self, snapshot: TelemetrySnapshot):
        super().__init__()
        self.speed = f"{snapshot.speed_kmh:.1f}"
        self.eta = snapshot.eta_display
        self.progress = f"{snapshot.progress_pct:.1f}"
        self.state = str(snapshot.state).capitalize()
        # Relative to the default rate, so 1000 ms per tick reads as 2.0x
        self.multiplier = f"{DEFAULT_RATE_MS / snapshot.rate_ms:.1f}"
        self.coordinates = (
            f"{snapshot.position.latitude:.6f}, {snapshot.position.longitude:.6f}"
            if snapshot.position is not None
            else "N/A"
        )
        self.timestamp = (
            format_sample_time(snapshot.position)
            if snapshot.position is not None
            else "N/A"
        )

        self._template = Template(
            """
        {% macro html(this, kwargs) %}
        <div id="telemetry-legend" style="
            position: fixed;
            top: 20px;
            left: 50px;
            width: 260px;
            background-color: rgba(15, 23, 42, 0.85);
            color: #F3F4F6;
            border: 1px solid rgba(34, 211, 238, 0.3);
            z-index: 9999;
            font-size: 13px;
            padding: 12px;
            font-family: Arial, sans-serif;
            border-radius: 10px;
            box-shadow: 0 0 25px rgba(34, 211, 238, 0.3);
            box-sizing: border-box;
        ">
            <b style="color: #67E8F9;">Vehicle Dashboard</b><br>
            <div style="margin: 4px 0;">Coordinates: {{ this.coordinates }}</div>
            <div style="margin: 4px 0;">Timestamp: {{ this.timestamp }}</div>
            <div style="margin: 4px 0;">Speed: {{ this.speed }} km/h</div>
            <div style="margin: 4px 0;">ETA: {{ this.eta }}</div>
            <div style="margin: 4px 0;">Progress: {{ this.progress }}%</div>
            <div style="margin: 4px 0;">State: {{ this.state }}</div>
            <div style="margin: 4px 0;">Simulation speed: {{ this.multiplier }}x</div>
            <div style="margin-top: 6px; width: 100%; height: 6px; background: rgba(55, 65, 81, 0.4); border-radius: 3px;">
                <div style="height: 6px; width: {{ this.progress }}%; background: #22D3EE; border-radius: 3px;"></div>
            </div>
        </div>
        {% endmacro %}
        """
        )


def format_sample_time(sample: Sample) -> str:
    """Local wall-clock time of a sample, e.g. 14:05:09."""
    return datetime.fromtimestamp(sample.timestamp / 1000.0).strftime("%H:%M:%S")


def create_route_map(
    engine: PlaybackEngine,
    output_filename: str,
    args: argparse.Namespace,
) -> None:
    """
    Create an interactive map showing the route and the vehicle's progress, save as HTML.

    Args:
        engine: PlaybackEngine whose route and cursor are drawn
        output_filename: Path where HTML map file should be saved
        args: argparse.Namespace object containing settings like bbox_buffer

    Raises:
        ValueError: If route is empty
    """
    route = engine.route
    if not route:
        raise ValueError("Cannot create map for empty route")

    snapshot = engine.snapshot()
    south, west, north, east = route.get_bbox(args.bbox_buffer)

    center_lat = (south + north) / 2
    center_lon = (west + east) / 2

    logger.debug(f"Creating map centered at ({center_lat:.4f}, {center_lon:.4f})")

    route_map = folium.Map(
        location=[center_lat, center_lon],
        tiles=None,
    )

    folium.TileLayer(
        tiles="CartoDB positron",
        attr=(
            "&copy; <a href='https://www.openstreetmap.org/copyright'>OpenStreetMap</a> "
            "contributors &copy; <a href='https://carto.com/attributions'>CARTO</a>"
        ),
        name="Standard",
        control=True,
        show=True,
    ).add_to(route_map)

    folium.TileLayer(
        tiles="https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
        attr=(
            "Tiles &copy; Esri &mdash; Source: Esri, i-cubed, USDA, USGS, AEX, GeoEye, "
            "Getmapping, Aerogrid, IGN, IGP, UPR-EGP, and the GIS User Community"
        ),
        name="Satellite",
        control=True,
        show=False,
    ).add_to(route_map)

    folium.LayerControl().add_to(route_map)

    full_path = engine.full_path()
    travelled = engine.travelled_path()

    if len(full_path) > 1:
        folium.PolyLine(
            full_path,
            color="#4B5563",
            weight=3,
            opacity=0.6,
            dash_array="6, 6",
            popup="Route",
            z_index=1,
        ).add_to(route_map)

    if len(travelled) > 1:
        folium.PolyLine(
            travelled,
            color="#22D3EE",
            weight=6,
            opacity=0.9,
            popup="Travelled",
            z_index=2,
        ).add_to(route_map)

    folium.Marker(
        list(full_path[0]),
        popup="Start",
        icon=folium.Icon(color="green", icon="play"),
    ).add_to(route_map)

    if len(full_path) > 1:
        folium.Marker(
            list(full_path[-1]),
            popup="End",
            icon=folium.Icon(color="red", icon="stop"),
        ).add_to(route_map)

    position = snapshot.position
    if position is not None:
        popup_text = (
            "<b>Vehicle</b><br>"
            f"Lat: {position.latitude:.5f}<br>"
            f"Lng: {position.longitude:.5f}<br>"
            f"{format_sample_time(position)}"
        )
        folium.Marker(
            [position.latitude, position.longitude],
            popup=folium.Popup(popup_text, max_width=250),
            icon=folium.Icon(color="blue", icon="car", prefix="fa"),
        ).add_to(route_map)

    route_map.add_child(TelemetryLegend(snapshot))

    bounds = [[south, west], [north, east]]  # Southwest corner  # Northeast corner
    route_map.fit_bounds(bounds)

    route_map.save(output_filename)

    logger.debug(
        f"Map saved to {output_filename} at sample {snapshot.cursor + 1}/{len(route)} "
        f"({snapshot.progress_pct:.1f}%)"
    )
