"""
Comment API endpoints.
Threaded comments, likes and reports.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from ..core.caller import Caller
from ..services.comment_service import CommentService
from ..services.report_service import CommentReportService
from .auth import get_active_caller, get_optional_caller

router = APIRouter()


class CreateCommentRequest(BaseModel):
    article_id: int
    content: str
    parent_id: Optional[int] = None


class UpdateCommentRequest(BaseModel):
    content: str


class ReportRequest(BaseModel):
    reason: str


class CommentResponse(BaseModel):
    id: int
    content: str
    article_id: int
    user_id: int
    username: Optional[str]
    parent_id: Optional[int]
    is_approved: bool
    like_count: int
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


@router.get("/article/{article_id}", response_model=List[CommentResponse])
async def get_article_comments(
    article_id: int,
    caller: Optional[Caller] = Depends(get_optional_caller),
    comment_service: CommentService = Depends()
):
    """Get approved comments for an article, oldest first."""
    return await comment_service.get_article_comments(article_id, caller)


@router.post("/", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    request: CreateCommentRequest,
    caller: Caller = Depends(get_active_caller),
    comment_service: CommentService = Depends()
):
    """Create a new comment, or a reply when ``parent_id`` is given."""
    return await comment_service.create(
        caller,
        article_id=request.article_id,
        content=request.content,
        parent_id=request.parent_id
    )


@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    request: UpdateCommentRequest,
    caller: Caller = Depends(get_active_caller),
    comment_service: CommentService = Depends()
):
    """Edit own comment."""
    return await comment_service.update(comment_id, caller, request.content)


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    caller: Caller = Depends(get_active_caller),
    comment_service: CommentService = Depends()
):
    """Delete a comment together with its replies."""
    removed = await comment_service.delete(comment_id, caller)
    return {"message": "Comment deleted successfully", "deleted": removed}


@router.put("/{comment_id}/approve", response_model=CommentResponse)
async def approve_comment(
    comment_id: int,
    caller: Caller = Depends(get_active_caller),
    comment_service: CommentService = Depends()
):
    return await comment_service.approve(comment_id, caller)


@router.post("/{comment_id}/like")
async def like_comment(
    comment_id: int,
    caller: Caller = Depends(get_active_caller),
    comment_service: CommentService = Depends()
):
    liked, like_count = await comment_service.toggle_like(comment_id, caller)
    return {"liked": liked, "like_count": like_count}


@router.post("/{comment_id}/report", status_code=status.HTTP_201_CREATED)
async def report_comment(
    comment_id: int,
    request: ReportRequest,
    caller: Caller = Depends(get_active_caller),
    report_service: CommentReportService = Depends()
):
    """Report a comment to the moderators. One report per user per comment."""
    report = await report_service.submit_report(caller, comment_id, request.reason)
    return {"message": "Comment reported", "report_id": report.id}
