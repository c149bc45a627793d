"""
Admin API endpoints.
Article review, report moderation, comment moderation, user management and
author applications. Every route requires an active admin.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..core.caller import Caller
from ..models.article import ArticleStatus
from ..models.user import AuthorStatus, UserRole
from ..services.admin_service import AdminService
from ..services.article_service import ArticleService
from ..services.comment_service import CommentService
from ..services.report_service import ArticleReportService, CommentReportService, ReportedTarget
from .articles import ArticleResponse, ArticleSummary
from .auth import UserResponse, require_admin
from .comments import CommentResponse

router = APIRouter()


class RejectRequest(BaseModel):
    reason: str


class RoleChangeRequest(BaseModel):
    role: str
    confirm: bool = False


class ReportEntryResponse(BaseModel):
    report_id: int
    reason: str
    reporter_username: Optional[str]
    reported_at: datetime

    class Config:
        from_attributes = True


class ReportedArticleResponse(BaseModel):
    id: int
    title: str
    slug: str
    status: ArticleStatus
    author_id: int
    author_username: Optional[str]
    report_count: int
    latest_reported_at: Optional[datetime]
    reports: List[ReportEntryResponse]


class ReportedCommentResponse(BaseModel):
    id: int
    content: str
    article_id: int
    user_id: int
    username: Optional[str]
    is_approved: bool
    is_reported: bool
    report_count: int
    latest_reported_at: Optional[datetime]
    reports: List[ReportEntryResponse]


class ModerationCommentResponse(CommentResponse):
    is_reported: bool
    article_title: Optional[str]
    report_count: int


class AuthorApplicationResponse(BaseModel):
    user_id: int
    username: str
    email: str
    role: UserRole
    author_status: AuthorStatus
    display_name: Optional[str]
    expertise: Optional[str]
    approved_by: Optional[int]
    approved_at: Optional[datetime]
    created_at: Optional[datetime]


class DashboardStatistics(BaseModel):
    total_users: int
    total_articles: int
    published_articles: int
    pending_articles: int
    total_categories: int
    total_comments: int
    pending_authors: int


class DashboardResponse(BaseModel):
    statistics: DashboardStatistics
    recent_articles: List[ArticleSummary]
    recent_users: List[UserResponse]


def _reported_article(entry: ReportedTarget) -> ReportedArticleResponse:
    article = entry.target
    return ReportedArticleResponse(
        id=article.id,
        title=article.title,
        slug=article.slug,
        status=article.status,
        author_id=article.author_id,
        author_username=article.author_username,
        report_count=entry.report_count,
        latest_reported_at=entry.latest_reported_at,
        reports=[ReportEntryResponse.model_validate(r) for r in entry.reports],
    )


def _reported_comment(entry: ReportedTarget) -> ReportedCommentResponse:
    comment = entry.target
    return ReportedCommentResponse(
        id=comment.id,
        content=comment.content,
        article_id=comment.article_id,
        user_id=comment.user_id,
        username=comment.username,
        is_approved=comment.is_approved,
        is_reported=comment.is_reported,
        report_count=entry.report_count,
        latest_reported_at=entry.latest_reported_at,
        reports=[ReportEntryResponse.model_validate(r) for r in entry.reports],
    )


def _author_application(profile) -> AuthorApplicationResponse:
    return AuthorApplicationResponse(
        user_id=profile.user_id,
        username=profile.user.username,
        email=profile.user.email,
        role=profile.user.role,
        author_status=profile.author_status,
        display_name=profile.display_name,
        expertise=profile.expertise,
        approved_by=profile.approved_by,
        approved_at=profile.approved_at,
        created_at=profile.created_at,
    )


# ============ Dashboard ============

@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    return await admin_service.get_dashboard(caller)


# ============ Articles ============

@router.get("/articles", response_model=List[ArticleSummary])
async def list_all_articles(
    status_filter: Optional[ArticleStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    caller: Caller = Depends(require_admin),
    article_service: ArticleService = Depends()
):
    """Articles in every state, newest first."""
    return await article_service.list_all(status=status_filter, search_query=search)


@router.get("/articles/pending", response_model=List[ArticleSummary])
async def list_pending_articles(
    caller: Caller = Depends(require_admin),
    article_service: ArticleService = Depends()
):
    """The review queue."""
    return await article_service.list_all(status=ArticleStatus.PENDING)


@router.put("/articles/{article_id}/approve", response_model=ArticleResponse)
async def approve_article(
    article_id: int,
    caller: Caller = Depends(require_admin),
    article_service: ArticleService = Depends()
):
    """Publish a pending article."""
    return await article_service.approve(article_id, caller)


@router.put("/articles/{article_id}/reject", response_model=ArticleResponse)
async def reject_article(
    article_id: int,
    request: RejectRequest,
    caller: Caller = Depends(require_admin),
    article_service: ArticleService = Depends()
):
    """Reject a pending article. The reason is shown to the author."""
    return await article_service.reject(article_id, caller, request.reason)


@router.put("/articles/{article_id}/feature", response_model=ArticleResponse)
async def toggle_featured_article(
    article_id: int,
    caller: Caller = Depends(require_admin),
    article_service: ArticleService = Depends()
):
    return await article_service.toggle_featured(article_id, caller)


@router.delete("/articles/{article_id}")
async def delete_article(
    article_id: int,
    caller: Caller = Depends(require_admin),
    article_service: ArticleService = Depends()
):
    await article_service.delete(article_id, caller)
    return {"message": "Article deleted successfully"}


# ============ Article reports ============

@router.get("/reports/articles", response_model=List[ReportedArticleResponse])
async def list_reported_articles(
    caller: Caller = Depends(require_admin),
    report_service: ArticleReportService = Depends()
):
    """Reported articles, most reported first."""
    return [_reported_article(entry) for entry in await report_service.list_reported_targets()]


@router.delete("/reports/articles/{report_id}")
async def dismiss_article_report(
    report_id: int,
    caller: Caller = Depends(require_admin),
    report_service: ArticleReportService = Depends()
):
    await report_service.dismiss_one(report_id)
    return {"message": "Report dismissed"}


@router.delete("/articles/{article_id}/reports")
async def dismiss_article_reports(
    article_id: int,
    caller: Caller = Depends(require_admin),
    report_service: ArticleReportService = Depends()
):
    """Dismiss every report against an article. The article stays as it is."""
    dismissed = await report_service.dismiss_all(article_id)
    return {"message": "Reports dismissed", "dismissed": dismissed}


# ============ Comments ============

@router.get("/comments", response_model=List[ModerationCommentResponse])
async def list_comments(
    status_filter: Optional[str] = Query(None, alias="status"),
    caller: Caller = Depends(require_admin),
    comment_service: CommentService = Depends()
):
    """All comments with live report counts; filter by pending, approved or reported."""
    rows = await comment_service.list_for_moderation(status_filter)
    return [
        ModerationCommentResponse(
            **CommentResponse.model_validate(row["comment"]).model_dump(),
            is_reported=row["comment"].is_reported,
            article_title=row["comment"].article.title if row["comment"].article else None,
            report_count=row["report_count"],
        )
        for row in rows
    ]


@router.put("/comments/{comment_id}/approve", response_model=CommentResponse)
async def approve_comment(
    comment_id: int,
    caller: Caller = Depends(require_admin),
    comment_service: CommentService = Depends()
):
    return await comment_service.approve(comment_id, caller)


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: int,
    caller: Caller = Depends(require_admin),
    comment_service: CommentService = Depends()
):
    removed = await comment_service.delete(comment_id, caller)
    return {"message": "Comment deleted successfully", "deleted": removed}


# ============ Comment reports ============

@router.get("/reports/comments", response_model=List[ReportedCommentResponse])
async def list_reported_comments(
    caller: Caller = Depends(require_admin),
    report_service: CommentReportService = Depends()
):
    return [_reported_comment(entry) for entry in await report_service.list_reported_targets()]


@router.delete("/reports/comments/{report_id}")
async def dismiss_comment_report(
    report_id: int,
    caller: Caller = Depends(require_admin),
    report_service: CommentReportService = Depends()
):
    await report_service.dismiss_one(report_id)
    return {"message": "Report dismissed"}


@router.delete("/comments/{comment_id}/reports")
async def dismiss_comment_reports(
    comment_id: int,
    caller: Caller = Depends(require_admin),
    report_service: CommentReportService = Depends()
):
    dismissed = await report_service.dismiss_all(comment_id)
    return {"message": "Reports dismissed", "dismissed": dismissed}


# ============ Users ============

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    role: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    return await admin_service.list_users(caller, role=role, status=status_filter, search=search)


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: int,
    request: RoleChangeRequest,
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    """Change a user's role. Granting or revoking admin needs ``confirm: true``."""
    return await admin_service.update_role(caller, user_id, request.role, request.confirm)


@router.put("/users/{user_id}/ban", response_model=UserResponse)
async def ban_user(
    user_id: int,
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    return await admin_service.ban(caller, user_id)


@router.put("/users/{user_id}/unban", response_model=UserResponse)
async def unban_user(
    user_id: int,
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    return await admin_service.unban(caller, user_id)


@router.put("/users/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status(
    user_id: int,
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    """Activate or deactivate an account. Admin accounts cannot be deactivated."""
    return await admin_service.toggle_status(caller, user_id)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    """Delete another user's account and everything attached to it."""
    await admin_service.delete_user(caller, user_id)
    return {"message": "User deleted successfully"}


# ============ Author applications ============

@router.get("/authors/pending", response_model=List[AuthorApplicationResponse])
async def list_pending_authors(
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    return [_author_application(p) for p in await admin_service.list_pending_authors(caller)]


@router.put("/authors/{user_id}/approve", response_model=AuthorApplicationResponse)
async def approve_author(
    user_id: int,
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    return _author_application(await admin_service.approve_author(caller, user_id))


@router.put("/authors/{user_id}/reject", response_model=AuthorApplicationResponse)
async def reject_author(
    user_id: int,
    caller: Caller = Depends(require_admin),
    admin_service: AdminService = Depends()
):
    return _author_application(await admin_service.reject_author(caller, user_id))
