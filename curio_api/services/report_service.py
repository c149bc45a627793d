"""
Report Service
User reports against articles and comments, and the moderation views over them.

Report counts always come from ``report_counts()``, a GROUP BY over the live
report rows. Nothing stores a count that could drift from the rows.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Type

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..core.caller import Caller
from ..core.database import Base, get_db
from ..core.exceptions import ConflictError, ForbiddenError, InvalidError, NotFoundError
from ..models.article import Article, ArticleStatus
from ..models.comment import Comment
from ..models.report import ArticleReport, CommentReport

logger = logging.getLogger(__name__)


@dataclass
class ReportEntry:
    report_id: int
    reason: str
    reporter_username: Optional[str]
    reported_at: datetime


@dataclass
class ReportedTarget:
    """A reported article or comment with its aggregated reports."""
    target: Base
    report_count: int
    latest_reported_at: Optional[datetime]
    reports: List[ReportEntry] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.target.id


class ReportService:
    """
    Report operations for one kind of target.

    Subclasses name the target model, the report model, the report column that
    points at the target and the target column that holds its owner.
    """

    kind: str = ""
    target_model: Type[Base]
    report_model: Type[Base]
    target_key: str
    owner_key: str

    def __init__(self, db: Session = Depends(get_db)):
        self.db = db

    @property
    def _target_fk(self):
        return getattr(self.report_model, self.target_key)

    def report_counts(self):
        """Subquery of (target_id, report_count, latest_reported_at) per reported target."""
        return select(
            self._target_fk.label("target_id"),
            func.count(self.report_model.id).label("report_count"),
            func.max(self.report_model.created_at).label("latest_reported_at"),
        ).group_by(self._target_fk).subquery()

    async def submit_report(self, caller: Caller, target_id: int, reason: Optional[str]):
        """
        File a report. One report per (reporter, target); a second one is a conflict.
        """
        if not reason or not reason.strip():
            raise InvalidError("Report reason is required")

        target = self._get_target(target_id, for_update=True)
        self._check_visible(target, caller)
        if getattr(target, self.owner_key) == caller.id:
            raise ConflictError(f"You cannot report your own {self.kind}")

        report = self.report_model(
            **{self.target_key: target_id, "user_id": caller.id, "reason": reason.strip()}
        )
        try:
            self.db.add(report)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"You have already reported this {self.kind}")

        self._on_reported(target)
        self.db.commit()

        logger.info("User %s reported %s %s", caller.id, self.kind, target_id)
        return report

    async def report_count(self, target_id: int) -> int:
        counts = self.report_counts()
        count = self.db.query(counts.c.report_count) \
            .filter(counts.c.target_id == target_id) \
            .scalar()
        return count or 0

    async def list_reported_targets(self) -> List[ReportedTarget]:
        """
        Every target with at least one report, most reported first, then most
        recently reported.
        """
        counts = self.report_counts()
        rows = self.db.query(self.target_model, counts.c.report_count, counts.c.latest_reported_at) \
            .join(counts, counts.c.target_id == self.target_model.id) \
            .order_by(counts.c.report_count.desc(), counts.c.latest_reported_at.desc()) \
            .all()
        if not rows:
            return []

        target_ids = [target.id for target, _, _ in rows]
        reports = self.db.query(self.report_model) \
            .options(joinedload(self.report_model.reporter)) \
            .filter(self._target_fk.in_(target_ids)) \
            .order_by(self.report_model.created_at.desc(), self.report_model.id.desc()) \
            .all()

        by_target: Dict[int, List[ReportEntry]] = {}
        for report in reports:
            by_target.setdefault(getattr(report, self.target_key), []).append(ReportEntry(
                report_id=report.id,
                reason=report.reason,
                reporter_username=report.reporter.username if report.reporter else None,
                reported_at=report.created_at,
            ))

        return [
            ReportedTarget(
                target=target,
                report_count=count,
                latest_reported_at=latest,
                reports=by_target.get(target.id, []),
            )
            for target, count, latest in rows
        ]

    async def dismiss_one(self, report_id: int) -> None:
        """Delete a single report. The target itself is left alone."""
        report = self.db.query(self.report_model).filter(self.report_model.id == report_id).first()
        if not report:
            raise NotFoundError("Report not found")

        target_id = getattr(report, self.target_key)
        self.db.delete(report)
        self.db.flush()
        self._on_report_removed(target_id)
        self.db.commit()

        logger.info("Dismissed %s report %s", self.kind, report_id)

    async def dismiss_all(self, target_id: int) -> int:
        """Delete every report for a target in one statement. Returns how many were removed."""
        target = self._get_target(target_id, for_update=True)

        deleted = self.db.query(self.report_model) \
            .filter(self._target_fk == target_id) \
            .delete(synchronize_session=False)
        self._on_cleared(target)
        self.db.commit()

        logger.info("Dismissed %s reports for %s %s", deleted, self.kind, target_id)
        return deleted

    def _get_target(self, target_id: int, for_update: bool = False):
        query = self.db.query(self.target_model).filter(self.target_model.id == target_id)
        if for_update:
            query = query.with_for_update()
        target = query.first()
        if not target:
            raise NotFoundError(f"{self.kind.capitalize()} not found")
        return target

    def _check_visible(self, target, caller: Caller):
        pass

    def _on_reported(self, target):
        pass

    def _on_report_removed(self, target_id: int):
        pass

    def _on_cleared(self, target):
        pass


class ArticleReportService(ReportService):
    kind = "article"
    target_model = Article
    report_model = ArticleReport
    target_key = "article_id"
    owner_key = "author_id"

    def _check_visible(self, target, caller: Caller):
        if target.status != ArticleStatus.PUBLISHED and not caller.can_manage(target.author_id):
            raise ForbiddenError("You are not allowed to view this article")


class CommentReportService(ReportService):
    """Comment reports also keep ``Comment.is_reported`` in step with the rows."""
    kind = "comment"
    target_model = Comment
    report_model = CommentReport
    target_key = "comment_id"
    owner_key = "user_id"

    def _check_visible(self, target, caller: Caller):
        article = target.article
        if article.status != ArticleStatus.PUBLISHED and not caller.can_manage(article.author_id):
            raise ForbiddenError("You are not allowed to view this comment")

    def _on_reported(self, target):
        target.is_reported = True

    def _on_report_removed(self, target_id: int):
        remaining = self.db.query(CommentReport.id) \
            .filter(CommentReport.comment_id == target_id) \
            .first()
        if remaining is None:
            self.db.query(Comment).filter(Comment.id == target_id) \
                .update({"is_reported": False}, synchronize_session=False)

    def _on_cleared(self, target):
        target.is_reported = False
