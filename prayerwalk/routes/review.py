"""Integrity review routes"""

from fastapi import APIRouter, Request

from ..database import Database

router = APIRouter(prefix="/admin", tags=["review"])


@router.get("/flags")
async def list_flags(
    request: Request,
    session_id: str | None = None,
    flag_type: str = "all",
    sort_dir: str = "desc",
):
    """Integrity flags for audit review"""
    db: Database = request.app.state.db
    flags = await db.get_flags(session_id=session_id, flag_type=flag_type, sort_dir=sort_dir)
    return {"flags": flags, "count": len(flags)}


@router.get("/stats")
async def stats(request: Request):
    """Session and flag counts"""
    db: Database = request.app.state.db
    return await db.get_flag_stats()
