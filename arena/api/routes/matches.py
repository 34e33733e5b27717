from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import StreamingResponse
from typing import List, Optional

from ...services.autosave import StatsAutosaver
from ...services.broadcast import Broadcaster, match_topic
from ...services.countdown import countdown_stream, time_left
from ...services.matches import MatchService
from ...schemas.matches import (
    MatchCreate, MatchResponse, MatchComplete, StatsSave, CountdownResponse
)
from ...schemas.control import SaveResult
from ...utils import parse_timestamp
from ..deps import get_broadcaster, get_match_service

router = APIRouter()

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def countdown_view(target) -> CountdownResponse:
    left = time_left(target)
    return CountdownResponse(
        target=parse_timestamp(target),
        expired=left.is_zero,
        total_seconds=left.total_seconds,
        **left.to_dict(),
    )


@router.get("/", response_model=List[MatchResponse])
async def list_matches(
    status: Optional[str] = Query(None, description="Filter by status"),
    tournament_id: Optional[str] = Query(None, description="Filter by tournament"),
    limit: int = Query(50, le=100),
    service: MatchService = Depends(get_match_service),
):
    """List matches with optional filters."""
    try:
        return await service.list_matches(status=status, tournament_id=tournament_id, limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/", response_model=MatchResponse, status_code=201)
async def create_match(match: MatchCreate, service: MatchService = Depends(get_match_service)):
    """Create a new match."""
    return await service.create_match(match.model_dump(exclude_none=True))


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(match_id: str, service: MatchService = Depends(get_match_service)):
    """Get a match by ID."""
    return await service.get_match(match_id)


@router.delete("/{match_id}", status_code=204)
async def delete_match(match_id: str, service: MatchService = Depends(get_match_service)):
    """Delete a match."""
    await service.delete_match(match_id)
    return Response(status_code=204)


@router.post("/{match_id}/start", response_model=MatchResponse)
async def start_match(match_id: str, service: MatchService = Depends(get_match_service)):
    """Move a scheduled match to in progress."""
    return await service.start_match(match_id)


@router.post("/{match_id}/complete", response_model=MatchResponse)
async def complete_match(
    match_id: str,
    scores: Optional[MatchComplete] = None,
    service: MatchService = Depends(get_match_service),
):
    """Complete a match. Scores default to the live kill counts."""
    scores = scores or MatchComplete()
    return await service.complete_match(match_id, scores.player1_score, scores.player2_score)


@router.post("/{match_id}/cancel", response_model=MatchResponse)
async def cancel_match(match_id: str, service: MatchService = Depends(get_match_service)):
    return await service.cancel_match(match_id)


@router.post("/{match_id}/dispute", response_model=MatchResponse)
async def dispute_match(match_id: str, service: MatchService = Depends(get_match_service)):
    return await service.dispute_match(match_id)


@router.get("/{match_id}/countdown", response_model=CountdownResponse)
async def match_countdown(match_id: str, service: MatchService = Depends(get_match_service)):
    """Time remaining until the match's scheduled start."""
    match = await service.get_match(match_id)
    return countdown_view(match.get("scheduled_time"))


@router.get("/{match_id}/countdown/stream")
async def match_countdown_stream(match_id: str, service: MatchService = Depends(get_match_service)):
    """Server-Sent Events countdown, one frame per second until the start time."""
    match = await service.get_match(match_id)
    return StreamingResponse(
        countdown_stream(match_topic(match_id), match.get("scheduled_time")),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.put("/{match_id}/stats", response_model=SaveResult)
async def save_stats(
    match_id: str,
    payload: StatsSave,
    service: MatchService = Depends(get_match_service),
):
    """Save live stats outside a control session.

    Stats are merged over the stored details; pass ``expected_version`` to
    refuse the write (409) when someone else saved in between.
    """
    autosaver = StatsAutosaver(service.store, match_id, broadcaster=service.broadcaster)
    await autosaver.load()
    autosaver.stats.apply(**payload.model_dump(exclude={"expected_version"}, exclude_none=True))
    row = await autosaver.save(expected_version=payload.expected_version)
    return SaveResult(
        saved=True,
        match_id=match_id,
        details_version=row["details_version"],
        match_details=row["match_details"],
    )


@router.get("/{match_id}/events")
async def match_events(
    match_id: str,
    service: MatchService = Depends(get_match_service),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Server-Sent Events stream of stat and status updates."""
    await service.get_match(match_id)
    return StreamingResponse(
        broadcaster.stream(match_topic(match_id)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
