"""
Category Service
"""

import logging
from typing import List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.caller import Caller
from ..core.database import get_db
from ..core.exceptions import ConflictError, ForbiddenError, InvalidError, NotFoundError
from ..models.article import Article, ArticleStatus, Category
from .article_service import slugify

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, db: Session = Depends(get_db)):
        self.db = db

    def _with_counts(self):
        published = func.count(Article.id)
        return self.db.query(Category, published) \
            .outerjoin(Article, (Article.category_id == Category.id)
                       & (Article.status == ArticleStatus.PUBLISHED)) \
            .group_by(Category.id)

    async def list_categories(self) -> List[Tuple[Category, int]]:
        """Categories by name, each with its number of published articles."""
        return self._with_counts().order_by(Category.name.asc()).all()

    async def get_by_slug(self, slug: str) -> Tuple[Category, int]:
        row = self._with_counts().filter(Category.slug == slug).first()
        if row is None:
            raise NotFoundError("Category not found")
        return row

    async def create(self, caller: Caller, name: str, description: Optional[str] = None) -> Category:
        self._require_admin(caller)
        if not name or not name.strip():
            raise InvalidError("Category name is required")

        category = Category(name=name.strip(), slug=slugify(name), description=description)
        try:
            self.db.add(category)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Category already exists")

        self.db.refresh(category)
        logger.info("Category %s created by admin %s", category.slug, caller.id)
        return category

    async def update(
        self,
        caller: Caller,
        category_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Category:
        """Rename or re-describe a category. Renaming regenerates the slug."""
        self._require_admin(caller)
        category = self._get(category_id)
        if name is None and description is None:
            raise InvalidError("No fields to update")

        if name is not None:
            if not name.strip():
                raise InvalidError("Category name is required")
            category.name = name.strip()
            category.slug = slugify(name)
        if description is not None:
            category.description = description or None

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Category already exists")

        self.db.refresh(category)
        logger.info("Category %s updated by admin %s", category.id, caller.id)
        return category

    async def delete(self, caller: Caller, category_id: int) -> None:
        """Delete an unused category. Categories with articles in any state are kept."""
        self._require_admin(caller)
        category = self._get(category_id)

        in_use = self.db.query(Article).filter(Article.category_id == category_id).count()
        if in_use:
            raise ConflictError(
                f"Cannot delete category. It has {in_use} article(s) associated with it."
            )

        self.db.delete(category)
        self.db.commit()
        logger.info("Category %s deleted by admin %s", category_id, caller.id)

    def _get(self, category_id: int) -> Category:
        category = self.db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise NotFoundError("Category not found")
        return category

    def _require_admin(self, caller: Caller):
        if not caller.is_admin:
            raise ForbiddenError("Only admins can manage categories")
