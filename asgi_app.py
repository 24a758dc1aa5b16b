"""
ASGI host for the users listener.

Serves the same reply as users_server.py from an ASGI application.
Run with hypercorn, directly or through this module:

    hypercorn asgi_app:app --bind 0.0.0.0:3000
    python asgi_app.py --port 3000
"""
import asyncio
import sys

from hypercorn.asyncio import serve
from hypercorn.config import Config

from users_server import (
    ACCEPT_CHARSET_HEADER,
    CUSTOM_HEADER,
    build_reply,
    configure_logging,
    log_request,
    logger,
    parse_args,
)


def request_url(scope) -> str:
    """Rebuild the URL as the client sent it, query string included."""
    raw_path = scope.get("raw_path") or scope["path"].encode("utf-8")
    url = raw_path.decode("utf-8", errors="replace")
    if scope.get("query_string"):
        url += "?" + scope["query_string"].decode("utf-8", errors="replace")
    return url


def header_value(scope, name: str):
    wanted = name.encode("latin-1")
    for key, value in scope.get("headers", []):
        if key.lower() == wanted:
            return value.decode("latin-1")
    return None


async def lifespan(receive, send):
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await send({"type": "lifespan.shutdown.complete"})
            return


async def app(scope, receive, send):
    """ASGI application answering every request with the users reply."""
    if scope["type"] == "lifespan":
        await lifespan(receive, send)
        return
    if scope["type"] != "http":
        return

    # Drain the request body
    while True:
        message = await receive()
        if not message.get("more_body", False):
            break

    url = request_url(scope)
    log_request(
        header_value(scope, ACCEPT_CHARSET_HEADER),
        header_value(scope, CUSTOM_HEADER),
        url,
        scope["method"],
    )

    reply = build_reply(url)
    # ASGI has no reason phrase; the server picks the standard one
    await send({
        "type": "http.response.start",
        "status": reply.status,
        "headers": [
            [name.lower().encode("latin-1"), value.encode("latin-1")]
            for name, value in reply.headers
        ],
    })

    await send({
        "type": "http.response.body",
        "body": b"" if scope["method"] == "HEAD" else reply.body,
    })


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    config = Config()
    config.bind = [f"{args.host}:{args.port}"]
    logger.info(f"Users listener (ASGI) on {args.host}:{args.port}")
    try:
        asyncio.run(serve(app, config))
    except OSError as e:
        logger.error(f"Cannot listen on {args.host}:{args.port}: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
