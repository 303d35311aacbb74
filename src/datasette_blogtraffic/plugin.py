"""
Datasette plugin serving the blogtraffic content API and blog pages.

- JSON API over blog posts (public reads, HMAC-signed writes)
- Keyword suggestion proxy aggregating Bing, DuckDuckGo and Yahoo
- Server-rendered blog listing and article pages
"""

import functools
import json
import logging
import os
import weakref
from pathlib import Path
from typing import Any

from datasette import Response, hookimpl
from datasette.utils.asgi import Request

from keyword_suggest.aggregator import InvalidKeywordError, SuggestionAggregator
from keyword_suggest.config import SuggestConfig

from .blog_store import BlogStore
from .cors import CorsPolicy
from .errors import (
    AuthError,
    BlogTrafficError,
    InternalError,
    MethodNotAllowedError,
    NotFoundError,
    ValidationError,
)
from .signing import REPLAY_WINDOW_MS, SignedRequest, verify_request

logger = logging.getLogger(__name__)

PLUGIN_NAME = "datasette-blogtraffic"
PLUGIN_VERSION = "0.1.0"

# -----------------------------------------------------------------------------
# Plugin Configuration
# -----------------------------------------------------------------------------


def get_plugin_config(datasette) -> dict[str, Any]:
    """
    Get plugin configuration from datasette.yaml.

    The signing secret and API token fall back to the BLOGTRAFFIC_SECRET_KEY
    and BLOGTRAFFIC_API_TOKEN environment variables.
    """
    config = datasette.plugin_config(PLUGIN_NAME) or {}
    return {
        "blog_db_path": config.get("blog_db_path", "blogtraffic.db"),
        "secret_key": config.get("secret_key") or os.environ.get("BLOGTRAFFIC_SECRET_KEY", ""),
        "api_token": config.get("api_token") or os.environ.get("BLOGTRAFFIC_API_TOKEN", ""),
        "replay_window_seconds": config.get("replay_window_seconds", REPLAY_WINDOW_MS // 1000),
        "cors": config.get("cors", {}),
        "suggest": config.get("suggest", {}),
    }


def get_db_path(datasette) -> Path:
    """Get the path to the blog database."""
    return Path(get_plugin_config(datasette)["blog_db_path"])


_stores: "weakref.WeakKeyDictionary[Any, BlogStore]" = weakref.WeakKeyDictionary()


def get_blog_store(datasette) -> BlogStore:
    """Get the BlogStore handle belonging to this Datasette instance."""
    db_path = get_db_path(datasette)
    store = _stores.get(datasette)
    if store is None or store.db_path != db_path:
        store = BlogStore(db_path)
        _stores[datasette] = store
    return store


def get_cors_policy(datasette) -> CorsPolicy:
    return CorsPolicy.from_config(get_plugin_config(datasette)["cors"])


def get_aggregator(datasette) -> SuggestionAggregator:
    config = SuggestConfig.from_dict(get_plugin_config(datasette)["suggest"])
    return SuggestionAggregator.from_config(config)


# -----------------------------------------------------------------------------
# Request Helpers
# -----------------------------------------------------------------------------


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Decode a JSON object request body."""
    try:
        data = json.loads(raw_body)
    except ValueError as e:
        raise ValidationError("Invalid JSON body") from e
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


async def read_signed_body(request: Request, datasette) -> dict[str, Any]:
    """
    Authenticate a signed write and return its decoded JSON body.

    The signature is checked against the raw body bytes before parsing.
    """
    config = get_plugin_config(datasette)
    if not config["secret_key"] or not config["api_token"]:
        raise InternalError("Request signing is not configured")

    raw_body = await request.post_body()
    signed = SignedRequest.from_headers(request.headers, raw_body)
    result = verify_request(
        signed,
        config["secret_key"],
        config["api_token"],
        window_ms=int(config["replay_window_seconds"]) * 1000,
    )
    if not result:
        logger.warning(f"Rejected signed {request.method} {request.path}: {result.reason}")
        raise AuthError(result.message, reason=result.reason)

    return parse_json_body(raw_body)


def require_blog_id(data: dict[str, Any]) -> str:
    blog_id = data.get("blogId")
    if not blog_id or not isinstance(blog_id, str):
        raise ValidationError("Missing required field: blogId")
    return blog_id


def api_view(*methods: str):
    """
    Wrap a JSON route handler.

    Answers CORS preflights, rejects other methods, and converts errors to
    JSON responses. Every response carries the CORS headers. The wrapped
    handler returns a ``(body, status)`` tuple.
    """

    def decorator(handler):
        @functools.wraps(handler)
        async def wrapper(request: Request, datasette) -> Response:
            cors_headers = get_cors_policy(datasette).headers_for(request.headers.get("origin"))

            if request.method == "OPTIONS":
                return Response.text("", status=200, headers=cors_headers)

            try:
                if request.method not in methods:
                    raise MethodNotAllowedError("Method not allowed")
                body, status = await handler(request, datasette)
            except BlogTrafficError as e:
                return Response.json(e.to_dict(), status=e.status, headers=cors_headers)
            except Exception as e:
                logger.exception(f"Error handling {request.method} {request.path}")
                return Response.json(
                    {"error": "Internal Server Error", "details": str(e)},
                    status=500,
                    headers=cors_headers,
                )

            return Response.json(body, status=status, headers=cors_headers)

        return wrapper

    return decorator


# -----------------------------------------------------------------------------
# Blog API Operations
# -----------------------------------------------------------------------------


async def read_blogs(request: Request, datasette) -> tuple[Any, int]:
    """Return one post by ?blogId= or ?slug=, or every post newest first."""
    store = get_blog_store(datasette)
    blog_id = request.args.get("blogId")
    slug = request.args.get("slug")

    if blog_id:
        return store.get_by_id(blog_id).to_dict(), 200
    if slug:
        return store.get_by_slug(slug).to_dict(), 200
    return [post.to_dict() for post in store.list_all()], 200


async def create_blog(request: Request, datasette) -> tuple[Any, int]:
    data = await read_signed_body(request, datasette)
    post = get_blog_store(datasette).create(data)
    return {"message": "Blog added successfully", "blog": post.to_dict()}, 201


async def update_blog(request: Request, datasette, blog_id: str | None = None) -> tuple[Any, int]:
    data = await read_signed_body(request, datasette)
    if blog_id is None:
        blog_id = require_blog_id(data)
    post = get_blog_store(datasette).update(blog_id, data)
    return {"message": "Blog updated successfully", "blog": post.to_dict()}, 200


async def delete_blog(request: Request, datasette) -> tuple[Any, int]:
    data = await read_signed_body(request, datasette)
    get_blog_store(datasette).delete(require_blog_id(data))
    return {"message": "Blog deleted successfully"}, 200


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@api_view("GET", "POST", "PATCH", "DELETE")
async def blogs_api(request: Request, datasette):
    """/api/blogs: public reads, signed create/update/delete."""
    if request.method == "POST":
        return await create_blog(request, datasette)
    if request.method == "PATCH":
        return await update_blog(request, datasette)
    if request.method == "DELETE":
        return await delete_blog(request, datasette)
    return await read_blogs(request, datasette)


@api_view("POST")
async def blogs_add(request: Request, datasette):
    return await create_blog(request, datasette)


@api_view("PATCH")
async def blogs_update(request: Request, datasette):
    return await update_blog(request, datasette, blog_id=request.url_vars["blog_id"])


@api_view("DELETE")
async def blogs_delete(request: Request, datasette):
    return await delete_blog(request, datasette)


@api_view("GET")
async def keyword_suggestions(request: Request, datasette):
    """Aggregate autocomplete suggestions for ?keyword= across providers."""
    aggregator = get_aggregator(datasette)
    try:
        result = await aggregator.aggregate(
            request.args.get("keyword"),
            request.args.get("country"),
            request.args.get("market"),
        )
    except InvalidKeywordError as e:
        raise ValidationError(str(e)) from e
    return result.to_dict(), 200


# -----------------------------------------------------------------------------
# Pages
# -----------------------------------------------------------------------------


async def render_template(
    datasette, request, template_name: str, context: dict, status: int = 200
) -> Response:
    """Render a template with the given context."""
    return Response.html(
        await datasette.render_template(
            template_name,
            {**context, "request": request},
            request=request,
        ),
        status=status,
    )


async def blogs_page(request: Request, datasette) -> Response:
    """Blog listing, newest first."""
    posts = get_blog_store(datasette).list_all()
    return await render_template(datasette, request, "blogtraffic_blogs.html", {"posts": posts})


async def blog_page(request: Request, datasette) -> Response:
    """A single post by slug."""
    slug = request.url_vars["slug"]
    try:
        post = get_blog_store(datasette).get_by_slug(slug)
    except NotFoundError:
        return await render_template(
            datasette, request, "blogtraffic_blog.html", {"post": None, "slug": slug}, status=404
        )
    return await render_template(datasette, request, "blogtraffic_blog.html", {"post": post})


# -----------------------------------------------------------------------------
# Datasette Hooks
# -----------------------------------------------------------------------------


@hookimpl
def register_routes():
    """Register plugin routes with Datasette."""
    return [
        # JSON API
        (r"^/api/blogs$", blogs_api),
        (r"^/api/blogs/add$", blogs_add),
        (r"^/api/blogs/delete$", blogs_delete),
        (r"^/api/blogs/(?P<blog_id>[^/]+)/update$", blogs_update),
        (r"^/api/domain$", keyword_suggestions),
        # Pages
        (r"^/blogs$", blogs_page),
        (r"^/blogs/(?P<slug>[^/]+)$", blog_page),
    ]


@hookimpl
def extra_template_vars(datasette):
    """Provide extra template variables."""
    return {
        "blogtraffic_version": PLUGIN_VERSION,
    }


TEMPLATES_DIR = Path(__file__).parent / "templates"


@hookimpl
def prepare_jinja2_environment(env, datasette):
    """Add the plugin's templates directory to the Jinja2 environment."""
    from jinja2 import ChoiceLoader, FileSystemLoader

    if hasattr(env, "loader"):
        env.loader = ChoiceLoader([FileSystemLoader(str(TEMPLATES_DIR)), env.loader])


@hookimpl
def skip_csrf(datasette, scope):
    """API routes are called by other services and authenticated by signature."""
    if scope.get("path", "").startswith("/api/"):
        return True
    return None


@hookimpl
def startup(datasette):
    """Create/migrate the blog database and warn about missing signing config."""
    config = get_plugin_config(datasette)
    get_blog_store(datasette).initialize()
    if not config["secret_key"] or not config["api_token"]:
        logger.warning(
            "secret_key/api_token not configured; signed blog writes will be rejected"
        )
