from fastapi import Request

from app.store import RunStore
from app.tracking.controller import LiveRunController
from app.tracking.location import PushLocationSource
from app.tracking.sinks import LiveMapState


def get_store(request: Request) -> RunStore:
    return request.app.state.store


def get_settings(request: Request):
    return request.app.state.settings


def get_live(request: Request) -> LiveRunController:
    return request.app.state.live


def get_live_source(request: Request) -> PushLocationSource:
    return request.app.state.live_source


def get_live_map(request: Request) -> LiveMapState:
    return request.app.state.live_map
