"""
Tests for reporting articles and comments, and the admin moderation views.
"""

from curio_api.models import ArticleReport, ArticleStatus, Comment, CommentReport
from tests.conftest import auth_headers, make_article, make_comment, make_user


def report_article(client, user, article_id, reason="Spam"):
    return client.post(
        f"/api/articles/{article_id}/report",
        json={"reason": reason},
        headers=auth_headers(user)
    )


def report_comment(client, user, comment_id, reason="Rude"):
    return client.post(
        f"/api/comments/{comment_id}/report",
        json={"reason": reason},
        headers=auth_headers(user)
    )


class TestSubmitReport:
    """Tests for filing reports"""

    def test_report_article(self, client, db, reader, published_article):
        response = report_article(client, reader, published_article.id)
        assert response.status_code == 201
        assert db.query(ArticleReport).count() == 1

    def test_duplicate_report_is_conflict(self, client, db, reader, admin, published_article):
        """Given an existing report, when the same user reports again, then 409 and the count stays 1."""
        assert report_article(client, reader, published_article.id).status_code == 201
        response = report_article(client, reader, published_article.id, reason="Still spam")
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

        reported = client.get("/api/admin/reports/articles", headers=auth_headers(admin)).json()
        assert reported[0]["report_count"] == 1

    def test_duplicate_comment_report_is_conflict(self, client, db, reader, other_reader, admin,
                                                  published_article):
        """Given a reported comment, when the same user reports it again, then 409 and the count stays 1."""
        comment = make_comment(db, published_article, reader)
        assert report_comment(client, other_reader, comment.id).status_code == 201
        response = report_comment(client, other_reader, comment.id, reason="Still rude")
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

        assert db.query(CommentReport).count() == 1
        reported = client.get("/api/admin/reports/comments", headers=auth_headers(admin)).json()
        assert reported[0]["report_count"] == 1

    def test_cannot_report_hidden_article(self, client, db, author, reader, admin):
        """Given a draft, when a reader reports it, then 403 and nothing reaches moderation."""
        draft = make_article(db, author)
        response = report_article(client, reader, draft.id)
        assert response.status_code == 403
        assert db.query(ArticleReport).count() == 0
        assert client.get("/api/admin/reports/articles", headers=auth_headers(admin)).json() == []

    def test_cannot_report_comment_on_hidden_article(self, client, db, author, reader, other_reader):
        pending = make_article(db, author, status=ArticleStatus.PENDING)
        comment = make_comment(db, pending, reader)
        assert report_comment(client, other_reader, comment.id).status_code == 403
        db.refresh(comment)
        assert comment.is_reported is False
        assert db.query(CommentReport).count() == 0

    def test_blank_reason_rejected(self, client, reader, published_article):
        response = report_article(client, reader, published_article.id, reason="  ")
        assert response.status_code == 400

    def test_missing_target(self, client, reader):
        assert report_article(client, reader, 404).status_code == 404
        assert report_comment(client, reader, 404).status_code == 404

    def test_cannot_report_own_article(self, client, author, published_article):
        assert report_article(client, author, published_article.id).status_code == 409

    def test_cannot_report_own_comment(self, client, db, reader, published_article):
        comment = make_comment(db, published_article, reader)
        assert report_comment(client, reader, comment.id).status_code == 409

    def test_comment_report_sets_flag(self, client, db, reader, other_reader, published_article):
        comment = make_comment(db, published_article, reader)
        assert report_comment(client, other_reader, comment.id).status_code == 201
        db.refresh(comment)
        assert comment.is_reported is True

    def test_banned_user_cannot_report(self, client, db, published_article):
        banned = make_user(db, "banned", is_banned=True)
        assert report_article(client, banned, published_article.id).status_code == 403


class TestReportedArticles:
    """Tests for the aggregated moderation view"""

    def test_counts_and_ordering(self, client, db, author, reader, other_reader, admin):
        """Given two reported articles, then the one with more reports is listed first."""
        once = make_article(db, author, title="Once", status=ArticleStatus.PUBLISHED)
        twice = make_article(db, author, title="Twice", status=ArticleStatus.PUBLISHED)
        report_article(client, reader, once.id)
        report_article(client, reader, twice.id, reason="Off topic")
        report_article(client, other_reader, twice.id, reason="Plagiarism")

        response = client.get("/api/admin/reports/articles", headers=auth_headers(admin))
        assert response.status_code == 200
        data = response.json()
        assert [item["id"] for item in data] == [twice.id, once.id]
        assert data[0]["report_count"] == 2
        assert data[0]["latest_reported_at"] is not None
        assert {r["reason"] for r in data[0]["reports"]} == {"Off topic", "Plagiarism"}
        assert {r["reporter_username"] for r in data[0]["reports"]} == {"reader", "other_reader"}

    def test_unreported_articles_not_listed(self, client, admin, published_article):
        assert client.get("/api/admin/reports/articles", headers=auth_headers(admin)).json() == []

    def test_dismiss_all(self, client, db, reader, other_reader, admin, published_article):
        """Given two reports, when dismissing all, then both go and the article leaves the list."""
        report_article(client, reader, published_article.id)
        report_article(client, other_reader, published_article.id)

        response = client.delete(
            f"/api/admin/articles/{published_article.id}/reports",
            headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["dismissed"] == 2
        assert client.get("/api/admin/reports/articles", headers=auth_headers(admin)).json() == []

        db.refresh(published_article)
        assert published_article.status == ArticleStatus.PUBLISHED

    def test_dismiss_one(self, client, db, reader, other_reader, admin, published_article):
        report_article(client, reader, published_article.id)
        report_article(client, other_reader, published_article.id)
        report_id = db.query(ArticleReport.id).filter(ArticleReport.user_id == reader.id).scalar()

        response = client.delete(f"/api/admin/reports/articles/{report_id}", headers=auth_headers(admin))
        assert response.status_code == 200

        data = client.get("/api/admin/reports/articles", headers=auth_headers(admin)).json()
        assert data[0]["report_count"] == 1
        assert data[0]["reports"][0]["reporter_username"] == "other_reader"

    def test_dismiss_missing_report(self, client, admin):
        response = client.delete("/api/admin/reports/articles/999", headers=auth_headers(admin))
        assert response.status_code == 404

    def test_non_admin_cannot_view(self, client, reader):
        assert client.get("/api/admin/reports/articles", headers=auth_headers(reader)).status_code == 403


class TestReportedComments:

    def test_dismiss_all_clears_flag(self, client, db, author, reader, other_reader, admin, published_article):
        comment = make_comment(db, published_article, author)
        report_comment(client, reader, comment.id)
        report_comment(client, other_reader, comment.id)

        data = client.get("/api/admin/reports/comments", headers=auth_headers(admin)).json()
        assert data[0]["id"] == comment.id
        assert data[0]["report_count"] == 2
        assert data[0]["is_reported"] is True

        response = client.delete(f"/api/admin/comments/{comment.id}/reports", headers=auth_headers(admin))
        assert response.json()["dismissed"] == 2

        db.expire_all()
        assert db.query(CommentReport).count() == 0
        assert db.get(Comment, comment.id).is_reported is False
        assert client.get("/api/admin/reports/comments", headers=auth_headers(admin)).json() == []

    def test_dismissing_last_report_clears_flag(self, client, db, author, reader, admin, published_article):
        comment = make_comment(db, published_article, author)
        report_comment(client, reader, comment.id)
        report_id = db.query(CommentReport.id).scalar()

        client.delete(f"/api/admin/reports/comments/{report_id}", headers=auth_headers(admin))

        db.expire_all()
        assert db.get(Comment, comment.id).is_reported is False

    def test_admin_comment_listing_uses_live_counts(self, client, db, author, reader, other_reader,
                                                    admin, published_article):
        reported = make_comment(db, published_article, author, content="Reported")
        make_comment(db, published_article, author, content="Clean")
        report_comment(client, reader, reported.id)
        report_comment(client, other_reader, reported.id)

        everything = client.get("/api/admin/comments", headers=auth_headers(admin)).json()
        counts = {c["content"]: c["report_count"] for c in everything}
        assert counts == {"Reported": 2, "Clean": 0}

        only_reported = client.get(
            "/api/admin/comments", params={"status": "reported"}, headers=auth_headers(admin)
        ).json()
        assert [c["id"] for c in only_reported] == [reported.id]

    def test_approve_comment_clears_reports(self, client, db, author, reader, admin, published_article):
        comment = make_comment(db, published_article, author)
        report_comment(client, reader, comment.id)

        response = client.put(f"/api/admin/comments/{comment.id}/approve", headers=auth_headers(admin))
        assert response.status_code == 200

        db.expire_all()
        assert db.query(CommentReport).count() == 0
        assert db.get(Comment, comment.id).is_reported is False
