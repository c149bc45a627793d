"""
Tests for the article lifecycle endpoints.
"""

from datetime import datetime

from curio_api.models import (
    Article, ArticleLike, ArticleReport, ArticleStatus, Bookmark, Comment, CommentLike,
    CommentReport, Follow, ReadingListItem, UserRole
)
from tests.conftest import auth_headers, make_article, make_comment, make_user


def create_article(client, author, **payload):
    body = {"title": "Learning to Sail", "content": "Wind, water and a lot of rope."}
    body.update(payload)
    return client.post("/api/articles/", json=body, headers=auth_headers(author))


class TestCreateArticle:
    """Tests for article creation"""

    def test_author_creates_draft(self, client, author, category):
        """Given an author, when creating an article, then it starts as a draft with a slug."""
        response = create_article(client, author, category_id=category.id, tags=["Travel", "travel", "Sea"])
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "draft"
        assert data["slug"] == "learning-to-sail"
        assert data["author_id"] == author.id
        assert data["reading_time"] == 1
        assert data["published_at"] is None
        assert sorted(data["tag_names"]) == ["Sea", "Travel"]

    def test_author_can_submit_directly(self, client, author):
        """Given status pending on create, then the article goes straight to the review queue."""
        response = create_article(client, author, status="pending")
        assert response.status_code == 201
        assert response.json()["status"] == "pending"

    def test_cannot_create_published(self, client, author):
        """Given an initial status other than draft or pending, then return 400."""
        response = create_article(client, author, status="published")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_reader_cannot_create(self, client, reader):
        response = create_article(client, reader)
        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "code": "FORBIDDEN",
            "message": "Only authors can create articles",
        }

    def test_unauthenticated_cannot_create(self, client):
        response = client.post("/api/articles/", json={"title": "x", "content": "y"})
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_duplicate_titles_get_unique_slugs(self, client, author):
        """Given two articles with the same title, then the second slug gets a numeric suffix."""
        first = create_article(client, author).json()
        second = create_article(client, author).json()
        assert first["slug"] == "learning-to-sail"
        assert second["slug"] == "learning-to-sail-1"


class TestUpdateArticle:

    def test_title_change_regenerates_slug_and_keeps_status(self, client, db, author):
        article = make_article(db, author, status=ArticleStatus.PENDING)
        response = client.put(
            f"/api/articles/{article.id}",
            json={"title": "A Night at Sea"},
            headers=auth_headers(author)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["slug"] == "a-night-at-sea"
        assert data["status"] == "pending"

    def test_other_user_cannot_update(self, client, db, author, other_reader):
        article = make_article(db, author)
        response = client.put(
            f"/api/articles/{article.id}",
            json={"title": "Hijacked"},
            headers=auth_headers(other_reader)
        )
        assert response.status_code == 403


class TestArticleLifecycle:
    """Tests for the draft -> pending -> published/rejected -> archived workflow"""

    def test_full_publish_cycle(self, client, db, author, admin):
        """Given a draft, when submitted and approved, then it is published and the author is told."""
        article = make_article(db, author)

        response = client.post(f"/api/articles/{article.id}/submit", headers=auth_headers(author))
        assert response.status_code == 200
        assert response.json()["status"] == "pending"

        response = client.put(f"/api/admin/articles/{article.id}/approve", headers=auth_headers(admin))
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "published"
        assert data["published_at"] is not None
        assert data["reviewed_by"] == admin.id

        notifications = client.get("/api/notifications/", headers=auth_headers(author)).json()
        assert [n["type"] for n in notifications] == ["article_published"]

    def test_reapproval_keeps_first_published_at(self, client, db, author, admin):
        """Given a published article that is archived and re-approved, then published_at is unchanged."""
        article = make_article(db, author, status=ArticleStatus.PENDING)
        first = client.put(f"/api/admin/articles/{article.id}/approve", headers=auth_headers(admin)).json()

        assert client.post(f"/api/articles/{article.id}/archive", headers=auth_headers(admin)).status_code == 200
        assert client.post(f"/api/articles/{article.id}/submit", headers=auth_headers(admin)).status_code == 200
        second = client.put(f"/api/admin/articles/{article.id}/approve", headers=auth_headers(admin)).json()

        assert second["status"] == "published"
        assert second["published_at"] == first["published_at"]

    def test_reject_requires_reason(self, client, db, author, admin):
        """Given a blank reason, when rejecting, then return 400 and leave the article pending."""
        article = make_article(db, author, status=ArticleStatus.PENDING)
        response = client.put(
            f"/api/admin/articles/{article.id}/reject",
            json={"reason": "   "},
            headers=auth_headers(admin)
        )
        assert response.status_code == 400
        db.refresh(article)
        assert article.status == ArticleStatus.PENDING

    def test_reject_stores_reason_and_notifies(self, client, db, author, admin):
        article = make_article(db, author, status=ArticleStatus.PENDING)
        response = client.put(
            f"/api/admin/articles/{article.id}/reject",
            json={"reason": "Needs sources"},
            headers=auth_headers(admin)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "rejected"
        assert data["rejected_reason"] == "Needs sources"

        notifications = client.get("/api/notifications/", headers=auth_headers(author)).json()
        assert notifications[0]["type"] == "article_rejected"
        assert "Needs sources" in notifications[0]["message"]

    def test_resubmit_clears_rejected_reason(self, client, db, author):
        article = make_article(db, author, status=ArticleStatus.REJECTED, rejected_reason="Too short")
        response = client.post(f"/api/articles/{article.id}/submit", headers=auth_headers(author))
        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["rejected_reason"] is None

    def test_admin_withdraw_returns_to_draft(self, client, db, author, admin):
        article = make_article(db, author, status=ArticleStatus.PENDING)
        response = client.post(f"/api/articles/{article.id}/withdraw", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["status"] == "draft"

    def test_owner_cannot_withdraw(self, client, db, author):
        """Given the owner of a pending article, when withdrawing it, then return 403 and keep it pending."""
        article = make_article(db, author, status=ArticleStatus.PENDING)
        response = client.post(f"/api/articles/{article.id}/withdraw", headers=auth_headers(author))
        assert response.status_code == 403
        db.refresh(article)
        assert article.status == ArticleStatus.PENDING

    def test_owner_cannot_archive(self, client, db, author):
        """Given the owner of a published article, when archiving it, then return 403 and keep it live."""
        article = make_article(db, author, status=ArticleStatus.PUBLISHED)
        response = client.post(f"/api/articles/{article.id}/archive", headers=auth_headers(author))
        assert response.status_code == 403
        db.refresh(article)
        assert article.status == ArticleStatus.PUBLISHED

    def test_owner_cannot_resubmit_archived(self, client, db, author, admin):
        article = make_article(db, author, status=ArticleStatus.ARCHIVED)
        assert client.post(f"/api/articles/{article.id}/submit", headers=auth_headers(author)).status_code == 403
        response = client.post(f"/api/articles/{article.id}/submit", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["status"] == "pending"

    def test_approve_non_pending_is_conflict(self, client, db, author, admin):
        """Given a draft, when an admin approves it, then return 409."""
        article = make_article(db, author)
        response = client.put(f"/api/admin/articles/{article.id}/approve", headers=auth_headers(admin))
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_approve_twice_is_conflict(self, client, db, author, admin):
        article = make_article(db, author, status=ArticleStatus.PENDING)
        assert client.put(f"/api/admin/articles/{article.id}/approve", headers=auth_headers(admin)).status_code == 200
        response = client.put(f"/api/admin/articles/{article.id}/approve", headers=auth_headers(admin))
        assert response.status_code == 409

    def test_invalid_transition_is_conflict(self, client, db, author):
        """Given a draft, when archiving it, then return 409."""
        article = make_article(db, author)
        response = client.post(f"/api/articles/{article.id}/archive", headers=auth_headers(author))
        assert response.status_code == 409

    def test_author_cannot_approve_own_article(self, client, db, author):
        article = make_article(db, author, status=ArticleStatus.PENDING)
        response = client.put(f"/api/admin/articles/{article.id}/approve", headers=auth_headers(author))
        assert response.status_code == 403

    def test_other_user_cannot_submit(self, client, db, author, other_reader):
        article = make_article(db, author)
        response = client.post(f"/api/articles/{article.id}/submit", headers=auth_headers(other_reader))
        assert response.status_code == 403

    def test_missing_article_is_not_found(self, client, author):
        response = client.post("/api/articles/999/submit", headers=auth_headers(author))
        assert response.status_code == 404


class TestReadArticle:
    """Tests for visibility and view counting"""

    def test_anonymous_read_counts_a_view(self, client, db, published_article):
        response = client.get(f"/api/articles/{published_article.slug}")
        assert response.status_code == 200
        assert response.json()["view_count"] == 1
        client.get(f"/api/articles/{published_article.slug}")
        db.refresh(published_article)
        assert published_article.view_count == 2

    def test_author_read_does_not_count(self, client, db, author, published_article):
        response = client.get(f"/api/articles/{published_article.slug}", headers=auth_headers(author))
        assert response.status_code == 200
        assert response.json()["view_count"] == 0

    def test_admin_read_counts(self, client, admin, published_article):
        response = client.get(f"/api/articles/{published_article.slug}", headers=auth_headers(admin))
        assert response.json()["view_count"] == 1

    def test_draft_hidden_from_others(self, client, db, author, reader):
        """Given a draft, then anonymous users and other readers get 403."""
        article = make_article(db, author, title="Secret Draft")
        assert client.get(f"/api/articles/{article.slug}").status_code == 403
        assert client.get(f"/api/articles/{article.slug}", headers=auth_headers(reader)).status_code == 403

    def test_draft_visible_to_owner_and_admin(self, client, db, author, admin):
        article = make_article(db, author, title="Secret Draft")
        owner_view = client.get(f"/api/articles/{article.slug}", headers=auth_headers(author))
        admin_view = client.get(f"/api/articles/{article.slug}", headers=auth_headers(admin))
        assert owner_view.status_code == 200
        assert admin_view.status_code == 200
        db.refresh(article)
        assert article.view_count == 0

    def test_unknown_slug(self, client):
        assert client.get("/api/articles/no-such-article").status_code == 404

    def test_list_only_published(self, client, db, author, published_article):
        make_article(db, author, title="Draft One")
        response = client.get("/api/articles/")
        assert response.status_code == 200
        data = response.json()
        assert [a["id"] for a in data["articles"]] == [published_article.id]
        assert data["pagination"]["total_items"] == 1

    def test_list_filters_by_category(self, client, db, author, category):
        in_category = make_article(
            db, author, title="Chips", status=ArticleStatus.PUBLISHED, category_id=category.id
        )
        make_article(db, author, title="Gardens", status=ArticleStatus.PUBLISHED)
        data = client.get("/api/articles/", params={"category": "technology"}).json()
        assert [a["id"] for a in data["articles"]] == [in_category.id]


class TestDeleteArticle:

    def test_delete_cascades_everything(self, client, db, author, reader, other_reader, published_article):
        """Given an article with comments, likes, bookmarks and reports, when deleted, then nothing is left."""
        comment = make_comment(db, published_article, reader)
        db.add_all([
            CommentLike(comment_id=comment.id, user_id=other_reader.id),
            CommentReport(comment_id=comment.id, user_id=other_reader.id, reason="rude"),
            ArticleLike(article_id=published_article.id, user_id=reader.id),
            Bookmark(article_id=published_article.id, user_id=reader.id),
            ReadingListItem(article_id=published_article.id, user_id=reader.id),
            ArticleReport(article_id=published_article.id, user_id=reader.id, reason="spam"),
        ])
        db.commit()

        response = client.delete(f"/api/articles/{published_article.id}", headers=auth_headers(author))
        assert response.status_code == 200

        db.expire_all()
        for model in (Article, Comment, CommentLike, CommentReport, ArticleLike, Bookmark,
                      ReadingListItem, ArticleReport):
            assert db.query(model).count() == 0

    def test_only_owner_or_admin_can_delete(self, client, db, reader, admin, published_article):
        response = client.delete(f"/api/articles/{published_article.id}", headers=auth_headers(reader))
        assert response.status_code == 403
        response = client.delete(f"/api/admin/articles/{published_article.id}", headers=auth_headers(admin))
        assert response.status_code == 200


class TestFeatured:

    def test_cannot_feature_unpublished(self, client, db, author, admin):
        article = make_article(db, author)
        response = client.put(f"/api/admin/articles/{article.id}/feature", headers=auth_headers(admin))
        assert response.status_code == 400

    def test_feature_toggles(self, client, admin, published_article):
        url = f"/api/admin/articles/{published_article.id}/feature"
        assert client.put(url, headers=auth_headers(admin)).json()["is_featured"] is True
        assert client.put(url, headers=auth_headers(admin)).json()["is_featured"] is False


class TestReaderActions:

    def test_like_toggle_and_notification(self, client, author, reader, published_article):
        url = f"/api/articles/{published_article.id}/like"
        assert client.post(url, headers=auth_headers(reader)).json() == {"liked": True, "like_count": 1}
        assert client.post(url, headers=auth_headers(reader)).json() == {"liked": False, "like_count": 0}

        notifications = client.get("/api/notifications/", headers=auth_headers(author)).json()
        assert [n["type"] for n in notifications] == ["like"]

    def test_own_like_does_not_notify(self, client, author, published_article):
        client.post(f"/api/articles/{published_article.id}/like", headers=auth_headers(author))
        assert client.get("/api/notifications/unread-count", headers=auth_headers(author)).json() == {
            "unread_count": 0
        }

    def test_cannot_like_draft(self, client, db, author, reader):
        article = make_article(db, author)
        response = client.post(f"/api/articles/{article.id}/like", headers=auth_headers(reader))
        assert response.status_code == 400

    def test_bookmark_toggle(self, client, reader, published_article):
        url = f"/api/articles/{published_article.id}/bookmark"
        assert client.post(url, headers=auth_headers(reader)).json() == {"bookmarked": True}
        bookmarks = client.get("/api/users/me/bookmarks", headers=auth_headers(reader)).json()
        assert [a["id"] for a in bookmarks] == [published_article.id]
        assert client.post(url, headers=auth_headers(reader)).json() == {"bookmarked": False}

    def test_banned_user_cannot_like_but_can_read(self, client, db, published_article):
        banned = make_user(db, "banned_reader", is_banned=True)
        assert client.get(f"/api/articles/{published_article.slug}", headers=auth_headers(banned)).status_code == 200
        response = client.post(f"/api/articles/{published_article.id}/like", headers=auth_headers(banned))
        assert response.status_code == 403

    def test_banned_author_cannot_create(self, client, db):
        banned = make_user(db, "banned_author", role=UserRole.AUTHOR, is_banned=True)
        assert create_article(client, banned).status_code == 403


class TestFollowingFeed:
    """Tests for the feed of followed authors"""

    def test_feed_lists_followed_authors_published_articles(self, client, db, author, reader):
        """Given a followed author with a published article and a draft, then only the published one is listed."""
        other_author = make_user(db, "other_author", role=UserRole.AUTHOR)
        make_article(db, author, title="Followed Live", status=ArticleStatus.PUBLISHED,
                     published_at=datetime(2024, 5, 1))
        make_article(db, author, title="Followed Newer", status=ArticleStatus.PUBLISHED,
                     published_at=datetime(2024, 6, 1))
        make_article(db, author, title="Followed Draft")
        make_article(db, other_author, title="Not Followed", status=ArticleStatus.PUBLISHED)
        db.add(Follow(follower_id=reader.id, following_id=author.id))
        db.commit()

        response = client.get("/api/articles/feed", headers=auth_headers(reader))
        assert response.status_code == 200
        data = response.json()
        assert [a["title"] for a in data["articles"]] == ["Followed Newer", "Followed Live"]
        assert data["pagination"]["total_items"] == 2

    def test_empty_feed(self, client, reader, published_article):
        data = client.get("/api/articles/feed", headers=auth_headers(reader)).json()
        assert data["articles"] == []
        assert data["pagination"]["total_items"] == 0

    def test_feed_requires_login(self, client):
        assert client.get("/api/articles/feed").status_code == 401
