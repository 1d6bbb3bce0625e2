"""
Guestbook web service: POST /comment adds a comment, GET /comments lists the most recent ones.
"""

import json
import logging
from datetime import datetime, timezone

from aiohttp import web

from guestbench.configuration import (
    COMMENT_PATH,
    COMMENTS_KEY,
    COMMENTS_PATH,
    GUESTBOOK_HOST,
    GUESTBOOK_PORT,
    HTTP_CREATED_STATUS,
    RECENT_COMMENTS_LIMIT,
)
from guestbench.persistence.record import Comment
from guestbench.service.store import ListStore, StoreError

logger = logging.getLogger(__name__)

STORE_KEY = web.AppKey("store", ListStore)


async def post_comment(request: web.Request) -> web.Response:
    """Decode a comment, stamp it with server time and push it onto the list."""
    try:
        payload = await request.json()
        comment = Comment.from_dict(payload)
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
        raise web.HTTPBadRequest(text=str(e))

    comment = Comment(
        username=comment.username,
        message=comment.message,
        time=datetime.now(timezone.utc),
    )

    try:
        await request.app[STORE_KEY].push(COMMENTS_KEY, json.dumps(comment.to_dict()))
    except StoreError as e:
        logger.error(f"Failed to store comment: {e}")
        raise web.HTTPInternalServerError(text=str(e))

    return web.Response(status=HTTP_CREATED_STATUS)


async def get_comments(request: web.Request) -> web.Response:
    """Return the most recent comments as a JSON array."""
    try:
        entries = await request.app[STORE_KEY].range(COMMENTS_KEY, 0, RECENT_COMMENTS_LIMIT - 1)
    except StoreError as e:
        logger.error(f"Failed to read comments: {e}")
        raise web.HTTPInternalServerError(text=str(e))

    comments = []
    for entry in entries:
        try:
            comments.append(Comment.from_dict(json.loads(entry)).to_dict())
        except ValueError as e:
            logger.error(f"Corrupt comment in store: {e}")
            raise web.HTTPInternalServerError(text=f"corrupt comment: {e}")

    return web.json_response(comments)


async def _close_store(app: web.Application) -> None:
    await app[STORE_KEY].close()


def create_app(store: ListStore) -> web.Application:
    """Build the guestbook application around a list store."""
    app = web.Application()
    app[STORE_KEY] = store
    app.router.add_post(COMMENT_PATH, post_comment)
    app.router.add_get(COMMENTS_PATH, get_comments)
    app.on_cleanup.append(_close_store)
    return app


def serve(store: ListStore, host: str = GUESTBOOK_HOST, port: int = GUESTBOOK_PORT) -> None:
    """Run the guestbook until interrupted."""
    logger.info(f"Serving guestbook on http://{host}:{port}")
    web.run_app(create_app(store), host=host, port=port, print=None)
