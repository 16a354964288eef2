"""Persistence of the toolkits each user has enabled for chat."""

import logging
from typing import Iterable, List
from sqlalchemy import text

from app.infra.database import get_db_session

logger = logging.getLogger(__name__)


def get_user_enabled_toolkits(user_id: str) -> List[str]:
    """Return the user's enabled toolkit slugs, sorted."""
    with get_db_session() as session:
        rows = session.execute(
            text("""
                SELECT slug
                FROM user_toolkits
                WHERE user_id = :user_id AND enabled = TRUE
                ORDER BY slug ASC
            """),
            {"user_id": user_id}
        ).fetchall()
        return [row.slug for row in rows]


def set_user_enabled_toolkits(user_id: str, slugs: Iterable[str]) -> List[str]:
    """
    Replace the user's enabled toolkit set.

    Every existing row is disabled, then the given slugs are upserted as
    enabled, in one transaction.

    Returns:
        The enabled slugs, normalized to lower case and de-duplicated
    """
    normalized = sorted({slug.strip().lower() for slug in slugs if slug and slug.strip()})

    with get_db_session() as session:
        session.execute(
            text("UPDATE user_toolkits SET enabled = FALSE, updated_at = NOW() WHERE user_id = :user_id"),
            {"user_id": user_id}
        )
        for slug in normalized:
            session.execute(
                text("""
                    INSERT INTO user_toolkits (user_id, slug, enabled)
                    VALUES (:user_id, :slug, TRUE)
                    ON CONFLICT (user_id, slug)
                    DO UPDATE SET enabled = TRUE, updated_at = NOW()
                """),
                {"user_id": user_id, "slug": slug}
            )

    logger.info("Updated enabled toolkits", extra={"user_id": user_id, "toolkits": normalized})
    return normalized
