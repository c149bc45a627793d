"""
User API endpoints.
Own account, follows, bookmarks, reading list, author applications and badges.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from ..core.caller import Caller
from ..models.user import AuthorStatus
from ..services.badge_service import BadgeService
from ..services.user_service import UserService
from .articles import ArticleSummary
from .auth import UserResponse, get_active_caller, get_current_user

router = APIRouter()


class UpdateProfileRequest(BaseModel):
    full_name: Optional[str] = None
    bio: Optional[str] = None
    profile_image: Optional[str] = None


class AuthorApplicationRequest(BaseModel):
    display_name: Optional[str] = None
    expertise: Optional[str] = None


class AuthorProfileResponse(BaseModel):
    user_id: int
    author_status: AuthorStatus
    display_name: Optional[str]
    expertise: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class PublicProfileResponse(BaseModel):
    id: int
    username: str
    full_name: str
    bio: Optional[str]
    profile_image: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class UserStatsResponse(BaseModel):
    articles_published: int
    total_likes: int
    max_views: int
    comments_made: int
    followers: int
    following: int

    class Config:
        from_attributes = True


class BadgesResponse(BaseModel):
    badges: List[str]
    stats: UserStatsResponse


class ReadingListItemResponse(BaseModel):
    article_id: int
    is_read: bool
    added_at: Optional[datetime]
    read_at: Optional[datetime]
    article: ArticleSummary

    class Config:
        from_attributes = True


@router.put("/me", response_model=UserResponse)
async def update_my_profile(
    request: UpdateProfileRequest,
    caller: Caller = Depends(get_active_caller),
    user_service: UserService = Depends()
):
    """Update full name, bio or profile image."""
    return await user_service.update_profile(caller, **request.model_dump(exclude_unset=True))


@router.delete("/me")
async def delete_my_account(
    caller: Caller = Depends(get_current_user),
    user_service: UserService = Depends()
):
    """Delete own account and everything attached to it."""
    await user_service.delete_account(caller)
    return {"message": "Account deleted successfully"}


@router.get("/me/following", response_model=List[PublicProfileResponse])
async def get_following(
    caller: Caller = Depends(get_current_user),
    user_service: UserService = Depends()
):
    return await user_service.get_following(caller.id)


@router.get("/me/followers", response_model=List[PublicProfileResponse])
async def get_followers(
    caller: Caller = Depends(get_current_user),
    user_service: UserService = Depends()
):
    return await user_service.get_followers(caller.id)


@router.get("/me/bookmarks", response_model=List[ArticleSummary])
async def get_bookmarks(
    caller: Caller = Depends(get_current_user),
    user_service: UserService = Depends()
):
    """Get user's bookmarked articles."""
    return await user_service.get_bookmarks(caller)


@router.get("/me/reading-list", response_model=List[ReadingListItemResponse])
async def get_reading_list(
    unread: bool = False,
    caller: Caller = Depends(get_current_user),
    user_service: UserService = Depends()
):
    return await user_service.get_reading_list(caller, unread_only=unread)


@router.post(
    "/me/reading-list/{article_id}",
    response_model=ReadingListItemResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_to_reading_list(
    article_id: int,
    caller: Caller = Depends(get_active_caller),
    user_service: UserService = Depends()
):
    return await user_service.add_to_reading_list(caller, article_id)


@router.put("/me/reading-list/{article_id}/read", response_model=ReadingListItemResponse)
async def mark_as_read(
    article_id: int,
    caller: Caller = Depends(get_active_caller),
    user_service: UserService = Depends()
):
    return await user_service.mark_as_read(caller, article_id)


@router.delete("/me/reading-list/{article_id}")
async def remove_from_reading_list(
    article_id: int,
    caller: Caller = Depends(get_active_caller),
    user_service: UserService = Depends()
):
    await user_service.remove_from_reading_list(caller, article_id)
    return {"message": "Removed from reading list"}


@router.post(
    "/me/apply-author",
    response_model=AuthorProfileResponse,
    status_code=status.HTTP_201_CREATED
)
async def apply_as_author(
    request: AuthorApplicationRequest,
    caller: Caller = Depends(get_active_caller),
    user_service: UserService = Depends()
):
    """Apply to become an author. An admin reviews the application."""
    return await user_service.apply_as_author(
        caller,
        display_name=request.display_name,
        expertise=request.expertise
    )


@router.get("/{username}", response_model=PublicProfileResponse)
async def get_user_profile(username: str, user_service: UserService = Depends()):
    return await user_service.get_by_username(username)


@router.post("/{username}/follow", status_code=status.HTTP_201_CREATED)
async def follow_user(
    username: str,
    caller: Caller = Depends(get_active_caller),
    user_service: UserService = Depends()
):
    await user_service.follow(caller, username)
    return {"message": f"You are now following {username}"}


@router.delete("/{username}/follow")
async def unfollow_user(
    username: str,
    caller: Caller = Depends(get_active_caller),
    user_service: UserService = Depends()
):
    await user_service.unfollow(caller, username)
    return {"message": f"You unfollowed {username}"}


@router.get("/{username}/badges", response_model=BadgesResponse)
async def get_user_badges(username: str, badge_service: BadgeService = Depends()):
    """Badges earned so far, with the activity counters they are based on."""
    badges, stats = await badge_service.get_badges(username)
    return BadgesResponse(badges=badges, stats=UserStatsResponse.model_validate(stats))
