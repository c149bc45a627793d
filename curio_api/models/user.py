"""
User models.
Accounts, author applications and follows.
"""

from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base


class UserRole(str, Enum):
    """User roles in the system."""
    USER = "user"
    AUTHOR = "author"
    ADMIN = "admin"


class AuthorStatus(str, Enum):
    """Author application status."""
    PENDING = "pending"
    APPROVED = "approved"
    SUSPENDED = "suspended"


class User(Base):
    """
    User model for readers, authors, and admins.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    # Profile
    full_name = Column(String(100), nullable=False)
    bio = Column(Text, nullable=True)
    profile_image = Column(String(500), nullable=True)

    # Role and account state
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        default=UserRole.USER,
        nullable=False,
    )
    is_banned = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    articles = relationship("Article", back_populates="author", foreign_keys="Article.author_id")
    author_profile = relationship(
        "AuthorProfile", back_populates="user", uselist=False, foreign_keys="AuthorProfile.user_id"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class AuthorProfile(Base):
    """One-to-one author extension of a User."""
    __tablename__ = "author_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    author_status = Column(
        SQLEnum(AuthorStatus, name="author_status", values_callable=lambda e: [m.value for m in e]),
        default=AuthorStatus.PENDING,
        nullable=False,
    )
    display_name = Column(String(100), nullable=True)
    expertise = Column(String(255), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="author_profile", foreign_keys=[user_id])


class Follow(Base):
    """Follower -> followed user edge."""
    __tablename__ = "follows"
    __table_args__ = (UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    follower_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    following_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
