from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import StreamingResponse
from typing import List, Optional

from ...services.broadcast import Broadcaster, tournament_topic
from ...services.countdown import countdown_stream
from ...services.tournaments import TournamentService
from ...schemas.matches import MatchResponse, CountdownResponse
from ...schemas.tournaments import (
    TournamentCreate, TournamentUpdate, TournamentResponse,
    ParticipantCreate, ParticipantResponse, LeaderboardEntry, RoundResponse,
    KillCreate, KillResponse
)
from ..deps import get_broadcaster, get_tournament_service
from .matches import SSE_HEADERS, countdown_view

router = APIRouter()


@router.get("/", response_model=List[TournamentResponse])
async def list_tournaments(
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(50, le=100),
    service: TournamentService = Depends(get_tournament_service),
):
    """List tournaments ordered by start date."""
    try:
        return await service.list_tournaments(status=status, limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/", response_model=TournamentResponse, status_code=201)
async def create_tournament(
    tournament: TournamentCreate,
    service: TournamentService = Depends(get_tournament_service),
):
    """Create a new tournament."""
    try:
        return await service.create_tournament(tournament.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{tournament_id}", response_model=TournamentResponse)
async def get_tournament(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    """Get a tournament by ID."""
    return await service.get_tournament(tournament_id)


@router.patch("/{tournament_id}", response_model=TournamentResponse)
async def update_tournament(
    tournament_id: str,
    changes: TournamentUpdate,
    service: TournamentService = Depends(get_tournament_service),
):
    """Update room details, schedule or round count."""
    return await service.update_tournament(tournament_id, changes.model_dump(exclude_none=True))


@router.post("/{tournament_id}/start", response_model=TournamentResponse)
async def start_tournament(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    return await service.start_tournament(tournament_id)


@router.post("/{tournament_id}/next-round", response_model=TournamentResponse)
async def next_round(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    """Advance to the next round."""
    return await service.next_round(tournament_id)


@router.post("/{tournament_id}/end-round", response_model=TournamentResponse)
async def end_round(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    """End the current round; the last round completes the tournament."""
    return await service.end_round(tournament_id)


@router.post("/{tournament_id}/cancel", response_model=TournamentResponse)
async def cancel_tournament(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    return await service.cancel_tournament(tournament_id)


@router.get("/{tournament_id}/countdown", response_model=CountdownResponse)
async def tournament_countdown(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    """Time remaining until the tournament starts."""
    tournament = await service.get_tournament(tournament_id)
    return countdown_view(tournament.get("start_date"))


@router.get("/{tournament_id}/matches", response_model=List[MatchResponse])
async def tournament_matches(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    """All matches of a tournament."""
    return await service.list_tournament_matches(tournament_id)


@router.get("/{tournament_id}/countdown/stream")
async def tournament_countdown_stream(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    """Server-Sent Events countdown to the tournament start."""
    tournament = await service.get_tournament(tournament_id)
    return StreamingResponse(
        countdown_stream(tournament_topic(tournament_id), tournament.get("start_date")),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/{tournament_id}/rounds", response_model=List[RoundResponse])
async def list_rounds(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    return await service.list_rounds(tournament_id)


@router.get("/{tournament_id}/rounds/current", response_model=RoundResponse)
async def current_round(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    """The round in progress; 404 between rounds."""
    return await service.current_round(tournament_id)


@router.post("/{tournament_id}/participants", response_model=ParticipantResponse, status_code=201)
async def add_participant(
    tournament_id: str,
    participant: ParticipantCreate,
    service: TournamentService = Depends(get_tournament_service),
):
    """Register a player."""
    try:
        return await service.add_participant(tournament_id, participant.user_id, participant.username)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{tournament_id}/participants/{participant_id}", status_code=204)
async def remove_participant(
    tournament_id: str,
    participant_id: str,
    service: TournamentService = Depends(get_tournament_service),
):
    await service.remove_participant(tournament_id, participant_id)
    return Response(status_code=204)


@router.get("/{tournament_id}/leaderboard", response_model=List[LeaderboardEntry])
async def leaderboard(tournament_id: str, service: TournamentService = Depends(get_tournament_service)):
    """Participants ranked by score."""
    return await service.leaderboard(tournament_id)


@router.post("/{tournament_id}/kills", response_model=KillResponse, status_code=201)
async def add_kill(
    tournament_id: str,
    kill: KillCreate,
    service: TournamentService = Depends(get_tournament_service),
):
    """Record a kill in the current round."""
    try:
        return await service.add_kill(tournament_id, **kill.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{tournament_id}/kills", response_model=List[KillResponse])
async def kill_feed(
    tournament_id: str,
    limit: int = Query(20, ge=1, le=100),
    service: TournamentService = Depends(get_tournament_service),
):
    """Most recent kills first."""
    return await service.kill_feed(tournament_id, limit=limit)


@router.get("/{tournament_id}/events")
async def tournament_events(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Server-Sent Events stream of kills and round changes."""
    await service.get_tournament(tournament_id)
    return StreamingResponse(
        broadcaster.stream(tournament_topic(tournament_id)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
