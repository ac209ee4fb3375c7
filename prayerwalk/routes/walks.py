"""Walk session routes"""

import logging

from fastapi import APIRouter, Header, Request

from ..schemas import SessionPositionRequest, StartWalkRequest
from ..services import WalkService

router = APIRouter(prefix="/walks", tags=["walks"])
logger = logging.getLogger(__name__)


@router.post("/start", status_code=201)
async def start_walk(
    request: Request,
    body: StartWalkRequest,
    user_id: str = Header(..., alias="X-User-Id"),
):
    """Start a walk, generating its checkpoint route when a target is given"""
    walks: WalkService = request.app.state.walks
    prayer_session = await walks.start_session(user_id, body.coordinate, body.location_id)
    progress = await walks.get_progress(prayer_session.id, user_id)

    return {
        "success": True,
        "message": "Walk started with route integrity enabled",
        "session": {
            "id": prayer_session.id,
            "locationId": prayer_session.location_id,
            "status": prayer_session.status,
            "trustScore": prayer_session.trust_score,
            "startTime": prayer_session.start_time.isoformat(),
            "checkpointCount": progress["checkpointsTotal"],
        },
    }


@router.post("/arrive")
async def arrive(
    request: Request,
    body: SessionPositionRequest,
    user_id: str = Header(..., alias="X-User-Id"),
):
    """Check arrival at the walk's target"""
    walks: WalkService = request.app.state.walks
    result = await walks.arrive(body.session_id, user_id, body.coordinate)
    return {
        "success": True,
        "withinRange": result.within_range,
        "distance": round(result.distance_m, 1),
        "requiredRadius": result.required_radius_m,
        "integrityScore": round(result.route_integrity),
    }


@router.post("/complete")
async def complete(
    request: Request,
    body: SessionPositionRequest,
    user_id: str = Header(..., alias="X-User-Id"),
):
    """Score and complete a walk. Low integrity answers 403 and leaves the walk active."""
    walks: WalkService = request.app.state.walks
    result = await walks.complete_session(body.session_id, user_id, body.coordinate)
    return {
        "success": True,
        "trustScore": result.final_score,
        "pointsEarned": result.points_earned,
        "badgesEarned": result.new_badges,
    }


@router.post("/{session_id}/abandon")
async def abandon(
    request: Request,
    session_id: str,
    user_id: str = Header(..., alias="X-User-Id"),
):
    walks: WalkService = request.app.state.walks
    await walks.abandon_session(session_id, user_id)
    return {"success": True, "status": "abandoned"}


@router.get("/{session_id}/progress")
async def progress(
    request: Request,
    session_id: str,
    user_id: str = Header(..., alias="X-User-Id"),
):
    walks: WalkService = request.app.state.walks
    return await walks.get_progress(session_id, user_id)
