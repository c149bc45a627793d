"""
Article API endpoints.
Authoring, the review workflow seen from the author's side, and reader actions.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from ..core.caller import Caller
from ..models.article import ArticleStatus
from ..services.article_service import ArticleService
from ..services.report_service import ArticleReportService
from .auth import get_active_caller, get_current_user, get_optional_caller

router = APIRouter()


class CreateArticleRequest(BaseModel):
    title: str
    content: str
    excerpt: Optional[str] = None
    category_id: Optional[int] = None
    featured_image: Optional[str] = None
    tags: List[str] = []
    status: ArticleStatus = ArticleStatus.DRAFT


class UpdateArticleRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    category_id: Optional[int] = None
    featured_image: Optional[str] = None
    tags: Optional[List[str]] = None


class ReportRequest(BaseModel):
    reason: str


class ArticleSummary(BaseModel):
    id: int
    title: str
    slug: str
    excerpt: Optional[str]
    status: ArticleStatus
    author_id: int
    author_username: Optional[str]
    category_slug: Optional[str]
    featured_image: Optional[str]
    is_featured: bool
    reading_time: int
    view_count: int
    like_count: int
    comment_count: int
    created_at: datetime
    published_at: Optional[datetime]

    class Config:
        from_attributes = True


class ArticleResponse(ArticleSummary):
    content: str
    category_id: Optional[int]
    tag_names: List[str]
    rejected_reason: Optional[str]
    reviewed_by: Optional[int]
    reviewed_at: Optional[datetime]
    updated_at: Optional[datetime]


class PaginationResponse(BaseModel):
    current_page: int
    items_per_page: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class ArticleListResponse(BaseModel):
    articles: List[ArticleSummary]
    pagination: PaginationResponse


@router.get("/", response_model=ArticleListResponse)
async def list_articles(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    author: Optional[str] = None,
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    article_service: ArticleService = Depends()
):
    """List published articles with pagination and filters."""
    articles, pagination = await article_service.list_published(
        page=page,
        per_page=limit,
        category=category,
        tag=tag,
        author=author,
        search_query=search,
        featured=featured
    )
    return ArticleListResponse(articles=articles, pagination=pagination.as_dict())


@router.get("/feed", response_model=ArticleListResponse)
async def following_feed(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    caller: Caller = Depends(get_current_user),
    article_service: ArticleService = Depends()
):
    """Published articles from the authors the caller follows."""
    articles, pagination = await article_service.list_following_feed(caller, page=page, per_page=limit)
    return ArticleListResponse(articles=articles, pagination=pagination.as_dict())


@router.get("/mine", response_model=List[ArticleSummary])
async def list_my_articles(
    status_filter: Optional[ArticleStatus] = Query(None, alias="status"),
    caller: Caller = Depends(get_current_user),
    article_service: ArticleService = Depends()
):
    """The caller's own articles in every state, for the author dashboard."""
    return await article_service.list_all(status=status_filter, author_id=caller.id)


@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    caller: Optional[Caller] = Depends(get_optional_caller),
    article_service: ArticleService = Depends()
):
    """
    Get a single article by slug.
    Unpublished articles are only visible to their author and admins.
    """
    return await article_service.get_by_slug(slug, caller)


@router.post("/", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article(
    request: CreateArticleRequest,
    caller: Caller = Depends(get_active_caller),
    article_service: ArticleService = Depends()
):
    """Create a new article as a draft or submitted straight for review."""
    return await article_service.create(
        caller,
        title=request.title,
        content=request.content,
        status=request.status,
        excerpt=request.excerpt,
        category_id=request.category_id,
        featured_image=request.featured_image,
        tags=request.tags
    )


@router.put("/{article_id}", response_model=ArticleResponse)
async def update_article(
    article_id: int,
    request: UpdateArticleRequest,
    caller: Caller = Depends(get_active_caller),
    article_service: ArticleService = Depends()
):
    """Edit an article. The status is left as it is."""
    return await article_service.update(
        article_id,
        caller,
        **request.model_dump(exclude_unset=True)
    )


@router.delete("/{article_id}")
async def delete_article(
    article_id: int,
    caller: Caller = Depends(get_active_caller),
    article_service: ArticleService = Depends()
):
    await article_service.delete(article_id, caller)
    return {"message": "Article deleted successfully"}


@router.post("/{article_id}/submit", response_model=ArticleResponse)
async def submit_article(
    article_id: int,
    caller: Caller = Depends(get_active_caller),
    article_service: ArticleService = Depends()
):
    """Submit a draft or rejected article for review. Admins may also resubmit archived ones."""
    return await article_service.submit_for_review(article_id, caller)


@router.post("/{article_id}/withdraw", response_model=ArticleResponse)
async def withdraw_article(
    article_id: int,
    caller: Caller = Depends(get_active_caller),
    article_service: ArticleService = Depends()
):
    """Pull a pending article back to draft (admin)."""
    return await article_service.withdraw(article_id, caller)


@router.post("/{article_id}/archive", response_model=ArticleResponse)
async def archive_article(
    article_id: int,
    caller: Caller = Depends(get_active_caller),
    article_service: ArticleService = Depends()
):
    """Take a published article offline (admin)."""
    return await article_service.archive(article_id, caller)


@router.post("/{article_id}/like")
async def like_article(
    article_id: int,
    caller: Caller = Depends(get_active_caller),
    article_service: ArticleService = Depends()
):
    """Toggle a like on a published article."""
    liked, like_count = await article_service.toggle_like(article_id, caller)
    return {"liked": liked, "like_count": like_count}


@router.post("/{article_id}/bookmark")
async def bookmark_article(
    article_id: int,
    caller: Caller = Depends(get_active_caller),
    article_service: ArticleService = Depends()
):
    bookmarked = await article_service.toggle_bookmark(article_id, caller)
    return {"bookmarked": bookmarked}


@router.post("/{article_id}/report", status_code=status.HTTP_201_CREATED)
async def report_article(
    article_id: int,
    request: ReportRequest,
    caller: Caller = Depends(get_active_caller),
    report_service: ArticleReportService = Depends()
):
    """Report an article to the moderators. One report per user per article."""
    report = await report_service.submit_report(caller, article_id, request.reason)
    return {"message": "Article reported", "report_id": report.id}
