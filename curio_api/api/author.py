"""
Author API endpoints.
Dashboard and per-article statistics for the caller's own articles.
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.caller import Caller
from ..services.author_service import AuthorService
from .articles import ArticleSummary
from .auth import get_current_user

router = APIRouter()


class AuthorStatistics(BaseModel):
    total: int
    draft: int
    pending: int
    published: int
    rejected: int
    archived: int
    total_views: int
    total_likes: int
    total_comments: int


class AuthorDashboardResponse(BaseModel):
    statistics: AuthorStatistics
    top_articles: List[ArticleSummary]


class ArticleStatistics(BaseModel):
    total_views: int
    total_likes: int
    total_comments: int
    total_bookmarks: int
    engagement_rate: float


class ArticleStatsResponse(BaseModel):
    article: ArticleSummary
    statistics: ArticleStatistics


@router.get("/dashboard", response_model=AuthorDashboardResponse)
async def get_dashboard(
    caller: Caller = Depends(get_current_user),
    author_service: AuthorService = Depends()
):
    return await author_service.get_dashboard(caller)


@router.get("/articles/{article_id}/stats", response_model=ArticleStatsResponse)
async def get_article_stats(
    article_id: int,
    caller: Caller = Depends(get_current_user),
    author_service: AuthorService = Depends()
):
    return await author_service.get_article_stats(caller, article_id)
