"""
Shared fixtures: an in-memory SQLite database behind the app's get_db
dependency, seeded users and bearer headers.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from curio_api.core.database import Base, get_db
from curio_api.core.security import create_access_token, get_password_hash
from curio_api.main import app
from curio_api.models import Article, ArticleStatus, Category, Comment, User, UserRole

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_user(db, username, role=UserRole.USER, password="password123", **extra):
    user = User(
        email=f"{username}@example.com",
        username=username,
        password_hash=get_password_hash(password),
        full_name=username.capitalize(),
        role=role,
        **extra
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def make_article(db, author, title="A Day in the Life", status=ArticleStatus.DRAFT, **extra):
    article = Article(
        title=title,
        slug=extra.pop("slug", title.lower().replace(" ", "-")),
        content="Some words about the day.",
        author_id=author.id,
        status=status,
        **extra
    )
    db.add(article)
    db.commit()
    db.refresh(article)
    return article


def make_comment(db, article, user, content="Nice read", parent=None):
    comment = Comment(
        content=content,
        article_id=article.id,
        user_id=user.id,
        parent_id=parent.id if parent else None
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


@pytest.fixture
def reader(db):
    return make_user(db, "reader")


@pytest.fixture
def other_reader(db):
    return make_user(db, "other_reader")


@pytest.fixture
def author(db):
    return make_user(db, "author", role=UserRole.AUTHOR)


@pytest.fixture
def admin(db):
    return make_user(db, "admin", role=UserRole.ADMIN)


@pytest.fixture
def second_admin(db):
    return make_user(db, "second_admin", role=UserRole.ADMIN)


@pytest.fixture
def category(db):
    category = Category(name="Technology", slug="technology")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture
def published_article(db, author):
    return make_article(db, author, title="Published Piece", status=ArticleStatus.PUBLISHED)
