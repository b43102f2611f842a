"""Decorative image lookup router."""

from fastapi import APIRouter, Depends, Query

from routers.auth_scope import AuthContext, get_auth_context
from services.image_search import fetch_image_for_query

router = APIRouter()


@router.get("/search")
async def image_search(
    query: str = Query(min_length=1, max_length=200),
    _auth: AuthContext = Depends(get_auth_context),
):
    return {"query": query, "url": await fetch_image_for_query(query)}
