"""Display-side collaborators fed by the live run controller."""

from __future__ import annotations

from typing import Protocol, Sequence

from app.tracking.geo import Coord, route_bounds, route_geojson


class RenderSink(Protocol):
    def set_live_position(self, lat: float, lng: float, accuracy_m: float) -> None: ...

    def set_route(self, points: Sequence[Coord]) -> None: ...


class NullRenderSink:
    def set_live_position(self, lat, lng, accuracy_m):
        pass

    def set_route(self, points):
        pass


class LiveMapState:
    """Latest marker position and route, kept as GeoJSON for map clients."""

    def __init__(self):
        self.position: dict | None = None
        self.route: dict = route_geojson(())
        self.bounds: dict | None = None
        self.version = 0

    def set_live_position(self, lat: float, lng: float, accuracy_m: float) -> None:
        self.position = {"lat": lat, "lng": lng, "accuracy_m": accuracy_m}

    def set_route(self, points: Sequence[Coord]) -> None:
        self.route = route_geojson(points)
        self.bounds = route_bounds(points)
        self.version += 1

    def as_dict(self) -> dict:
        return {
            "position": self.position,
            "route": self.route,
            "bounds": self.bounds,
            "version": self.version,
        }
