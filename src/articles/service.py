"""Read helpers for articles exposed to public uploaders."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.storage.models import Article
from src.uploads.validators import PUBLISHED_STATUS


def get_article(session: Session, article_id: int) -> Optional[Article]:
    return session.get(Article, article_id)


def list_uploadable_articles(session: Session) -> list[Article]:
    statement = (
        select(Article)
        .where(Article.status != PUBLISHED_STATUS)
        .order_by(Article.created_at.desc(), Article.id.desc())
    )
    return list(session.scalars(statement).all())
