"""User badge routes"""

from fastapi import APIRouter, Request

from ..services import WalkService

router = APIRouter(prefix="/users", tags=["badges"])


@router.get("/{user_id}/badges")
async def user_badges(request: Request, user_id: str):
    walks: WalkService = request.app.state.walks
    return {"badges": await walks.get_user_badges(user_id)}


@router.get("/{user_id}/badges/progress")
async def badge_progress(request: Request, user_id: str):
    walks: WalkService = request.app.state.walks
    return await walks.get_badge_progress(user_id)
