"""
Blog post storage for datasette-blogtraffic.

Posts live in the ``blogs`` table of a SQLite database, keyed by the
client-supplied ``blogId``. API payloads use camelCase field names; columns
use snake_case.
"""

import json
import logging
import math
import re
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .errors import ConflictError, NotFoundError, ValidationError
from .migrations import run_migrations

logger = logging.getLogger(__name__)

# API field name -> column name
FIELD_COLUMNS = {
    "blogId": "blog_id",
    "title": "title",
    "content": "content",
    "slug": "slug",
    "thumbnail": "thumbnail",
    "seoTitle": "seo_title",
    "seoDescription": "seo_description",
    "keywords": "keywords_json",
}

REQUIRED_FIELDS = ("blogId", "title", "content", "slug")
OPTIONAL_TEXT_FIELDS = ("thumbnail", "seoTitle", "seoDescription")

WORDS_PER_MINUTE = 200


def _coerce_volume(value: Any) -> int | float:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            try:
                return float(value)
            except ValueError:
                return 0
    return 0


def normalize_keywords(keywords: Any) -> list[dict[str, Any]]:
    """
    Normalize keywords into a list of ``{"name", "volume"}`` dicts.

    Accepts a single string, a list of strings, or a list of dicts with a
    ``name``. Entries that are neither are dropped; volume defaults to 0.
    """
    if not keywords:
        return []
    if isinstance(keywords, str):
        return [{"name": keywords, "volume": 0}]
    if not isinstance(keywords, list):
        return []

    normalized = []
    for keyword in keywords:
        if isinstance(keyword, str):
            normalized.append({"name": keyword, "volume": 0})
        elif isinstance(keyword, dict) and keyword.get("name"):
            normalized.append(
                {"name": str(keyword["name"]), "volume": _coerce_volume(keyword.get("volume"))}
            )
    return normalized


@dataclass
class BlogPost:
    """A stored blog post."""

    blog_id: str
    title: str
    content: str
    slug: str
    created_ts: str
    updated_ts: str
    thumbnail: str | None = None
    seo_title: str | None = None
    seo_description: str | None = None
    keywords_json: str = "[]"

    @property
    def keywords(self) -> list[dict[str, Any]]:
        """Parse keywords_json."""
        return json.loads(self.keywords_json) if self.keywords_json else []

    @property
    def reading_minutes(self) -> int:
        """Rough reading time at 200 words per minute."""
        return max(1, math.ceil(len(self.content.split()) / WORDS_PER_MINUTE))

    @property
    def paragraphs(self) -> list[str]:
        """Content split on blank lines, for page rendering."""
        return [p.strip() for p in re.split(r"\n\s*\n", self.content) if p.strip()]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API representation."""
        return {
            "blogId": self.blog_id,
            "title": self.title,
            "content": self.content,
            "slug": self.slug,
            "thumbnail": self.thumbnail,
            "seoTitle": self.seo_title,
            "seoDescription": self.seo_description,
            "keywords": self.keywords,
            "createdAt": self.created_ts,
            "updatedAt": self.updated_ts,
        }


def _check_text(data: dict[str, Any], name: str, required: bool) -> None:
    value = data.get(name)
    if value is None:
        if required:
            raise ValidationError(f"Missing required field: {name}")
        return
    if not isinstance(value, str):
        raise ValidationError(f"Field '{name}' must be a string")
    if required and not value.strip():
        raise ValidationError(f"Missing required field: {name}")


def validate_new_post(data: dict[str, Any]) -> None:
    """Check required and optional fields of a create payload."""
    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        raise ValidationError("Missing required core fields", details=", ".join(missing))
    for name in REQUIRED_FIELDS:
        _check_text(data, name, required=True)
    for name in OPTIONAL_TEXT_FIELDS:
        _check_text(data, name, required=False)


class BlogStore:
    """
    Blog post operations over a SQLite database.

    The schema is migrated lazily on first use. If that fails the store stays
    uninitialized, so the next call retries instead of reusing a broken state.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def initialize(self) -> None:
        """Create/migrate the database if that hasn't happened yet."""
        if self._ready:
            return
        try:
            run_migrations(self.db_path, verbose=False)
        except Exception:
            logger.exception(f"Could not initialize blog database {self.db_path}")
            self.reset()
            raise
        self._ready = True

    def reset(self) -> None:
        """Forget initialization state; the next acquire() migrates again."""
        self._ready = False

    def acquire(self) -> sqlite3.Connection:
        """Open a connection, initializing the database first if needed."""
        self.initialize()
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error:
            self.reset()
            raise
        conn.row_factory = sqlite3.Row
        return conn

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_all(self) -> list[BlogPost]:
        """All posts, newest first."""
        conn = self.acquire()
        try:
            cursor = conn.execute(
                "SELECT * FROM blogs ORDER BY created_ts DESC, rowid DESC"
            )
            return [BlogPost(**dict(row)) for row in cursor.fetchall()]
        finally:
            conn.close()

    def find_by_id(self, blog_id: str) -> BlogPost | None:
        conn = self.acquire()
        try:
            row = conn.execute(
                "SELECT * FROM blogs WHERE blog_id = ?", (blog_id,)
            ).fetchone()
            return BlogPost(**dict(row)) if row else None
        finally:
            conn.close()

    def get_by_id(self, blog_id: str) -> BlogPost:
        post = self.find_by_id(blog_id)
        if post is None:
            raise NotFoundError("Blog not found")
        return post

    def get_by_slug(self, slug: str) -> BlogPost:
        """
        Get a post by slug.

        Slugs aren't unique; the earliest-created post with the slug wins.
        """
        conn = self.acquire()
        try:
            row = conn.execute(
                "SELECT * FROM blogs WHERE slug = ? ORDER BY created_ts ASC, rowid ASC LIMIT 1",
                (slug,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError("Blog not found")
        return BlogPost(**dict(row))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, data: dict[str, Any]) -> BlogPost:
        """
        Create a post from an API payload.

        Raises ValidationError for missing core fields and ConflictError if
        the blogId is taken; an existing post is never modified.
        """
        validate_new_post(data)
        now = datetime.now(UTC).isoformat()
        post = BlogPost(
            blog_id=data["blogId"],
            title=data["title"],
            content=data["content"],
            slug=data["slug"],
            thumbnail=data.get("thumbnail"),
            seo_title=data.get("seoTitle"),
            seo_description=data.get("seoDescription"),
            keywords_json=json.dumps(normalize_keywords(data.get("keywords"))),
            created_ts=now,
            updated_ts=now,
        )

        conn = self.acquire()
        try:
            existing = conn.execute(
                "SELECT 1 FROM blogs WHERE blog_id = ?", (post.blog_id,)
            ).fetchone()
            if existing:
                raise ConflictError("Blog with this blogId already exists")
            try:
                conn.execute(
                    """
                    INSERT INTO blogs
                        (blog_id, title, content, slug, thumbnail, seo_title,
                         seo_description, keywords_json, created_ts, updated_ts)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        post.blog_id,
                        post.title,
                        post.content,
                        post.slug,
                        post.thumbnail,
                        post.seo_title,
                        post.seo_description,
                        post.keywords_json,
                        post.created_ts,
                        post.updated_ts,
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError("Blog with this blogId already exists") from e
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Created blog {post.blog_id} ({post.slug})")
        return post

    def update(self, blog_id: str, data: dict[str, Any]) -> BlogPost:
        """
        Apply a partial update to a post.

        Unknown fields are ignored. Core fields can't be blanked and blogId
        can't be changed.
        """
        if not blog_id:
            raise ValidationError("Missing required field: blogId")
        if "blogId" in data and data["blogId"] != blog_id:
            raise ValidationError("blogId cannot be changed")

        fields: dict[str, Any] = {}
        for name, column in FIELD_COLUMNS.items():
            if name == "blogId" or name not in data:
                continue
            if name == "keywords":
                fields[column] = json.dumps(normalize_keywords(data[name]))
                continue
            _check_text(data, name, required=name in REQUIRED_FIELDS)
            fields[column] = data[name]
        fields["updated_ts"] = datetime.now(UTC).isoformat()

        conn = self.acquire()
        try:
            set_clause = ", ".join(f"{column} = ?" for column in fields)
            cursor = conn.execute(
                f"UPDATE blogs SET {set_clause} WHERE blog_id = ?",
                [*fields.values(), blog_id],
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Blog not found")
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Updated blog {blog_id}: {', '.join(sorted(fields))}")
        return self.get_by_id(blog_id)

    def delete(self, blog_id: str) -> None:
        """Delete a post; NotFoundError if there is none."""
        if not blog_id:
            raise ValidationError("Missing required field: blogId")

        conn = self.acquire()
        try:
            cursor = conn.execute("DELETE FROM blogs WHERE blog_id = ?", (blog_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("Blog not found")
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Deleted blog {blog_id}")
