"""Article listing for the public upload form."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.articles.service import list_uploadable_articles
from src.schemas.uploads import ArticleSummary
from src.storage.db import get_session


router = APIRouter(prefix="/articles", tags=["articles"])


@router.get("/uploadable", response_model=list[ArticleSummary])
def uploadable_articles(session: Session = Depends(get_session)) -> list[ArticleSummary]:
    return [
        ArticleSummary(id=article.id, title=article.title, status=article.status)
        for article in list_uploadable_articles(session)
    ]
