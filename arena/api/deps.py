from fastapi import Request

from ..services.broadcast import Broadcaster
from ..services.live_control import ControlCenter
from ..services.matches import MatchService
from ..services.streams import StreamService
from ..services.tournaments import TournamentService
from ..store.base import DataStore


def get_store(request: Request) -> DataStore:
    return request.app.state.store


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_control_center(request: Request) -> ControlCenter:
    return request.app.state.control


def get_match_service(request: Request) -> MatchService:
    return MatchService(get_store(request), get_broadcaster(request))


def get_tournament_service(request: Request) -> TournamentService:
    return TournamentService(get_store(request), get_broadcaster(request))


def get_stream_service(request: Request) -> StreamService:
    return StreamService(get_store(request), get_broadcaster(request))
