#!/usr/bin/env python3
"""
Users listener.

Answers every HTTP request, whatever its method or path, with a plaintext
body naming the requested URL and a fixed list of user ids:

    Your request to /:["56b64e2c765eb2fdb6238f7b",...]

The reply is built by build_reply(), a pure function of the URL, so any
host runtime can serve it. This module ships the threaded http.server
host; asgi_app.py ships the ASGI one.
"""
import argparse
import json
import logging
import os
import sys
from http.server import HTTPServer, BaseHTTPRequestHandler
from socketserver import ThreadingMixIn
from typing import List, NamedTuple, Optional, Tuple

# Fixed name so the log reads the same when run as a script
logger = logging.getLogger("users_server")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

USER_IDS = (
    "56b64e2c765eb2fdb6238f7b",
    "56b64e2e765eb2fdb6238f7c",
    "56b64e2f765eb2fdb6238f7d",
)
# Compact separators, same text as JSON.stringify
USERS_JSON = json.dumps(list(USER_IDS), separators=(",", ":"))

REASON = "awesome"
CONTENT_TYPE = "text/plain"

ACCEPT_CHARSET_HEADER = "accept-charset"
CUSTOM_HEADER = "azat-header"


class Reply(NamedTuple):
    status: int
    reason: str
    headers: List[Tuple[str, str]]
    body: bytes


def build_reply(url: str) -> Reply:
    """Build the response for a request to ``url`` (raw path plus query)."""
    body = f"Your request to {url}:{USERS_JSON}".encode("utf-8")
    headers = [
        ("Content-Length", str(len(body))),
        ("Content-Type", CONTENT_TYPE),
    ]
    return Reply(200, REASON, headers, body)


def log_request(accept_charset: Optional[str], custom_header: Optional[str],
                url: str, method: str) -> None:
    """Write the four per-request log lines. Missing headers log as empty."""
    logger.info("%s", accept_charset or "")
    logger.info("%s", custom_header or "")
    logger.info("URL:  %s", url)
    logger.info("METHOD:  %s", method)


class UsersHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def __getattr__(self, name):
        # Every method, standard or not, gets the same reply
        if name.startswith("do_"):
            return self.respond
        raise AttributeError(name)

    @property
    def raw_url(self) -> str:
        # http.server decodes the request line as latin-1
        return self.path.encode("iso-8859-1").decode("utf-8", errors="replace")

    def discard_body(self):
        if "Transfer-Encoding" in self.headers:
            self.close_connection = True
            return
        try:
            length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            self.close_connection = True
            return
        if length < 0:
            self.close_connection = True
        elif length > 0:
            self.rfile.read(length)

    def respond(self):
        url = self.raw_url
        log_request(
            self.headers.get(ACCEPT_CHARSET_HEADER),
            self.headers.get(CUSTOM_HEADER),
            url,
            self.command,
        )
        self.discard_body()

        reply = build_reply(url)
        self.send_response(reply.status, reply.reason)
        for name, value in reply.headers:
            self.send_header(name, value)
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(reply.body)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


class ThreadedHTTPServer(ThreadingMixIn, HTTPServer):
    daemon_threads = True
    allow_reuse_address = True


def make_server(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> ThreadedHTTPServer:
    return ThreadedHTTPServer((host, port), UsersHandler)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Users listener")
    parser.add_argument("--host", default=os.environ.get("HOST", DEFAULT_HOST))
    parser.add_argument("--port", type=int,
                        default=int(os.environ.get("PORT", DEFAULT_PORT)))
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS,
                        default=os.environ.get("LOG_LEVEL", "INFO"))
    args = parser.parse_args(argv)
    # argparse does not check defaults against choices
    if args.log_level not in LOG_LEVELS:
        parser.error(f"invalid LOG_LEVEL: {args.log_level!r}")
    return args


def configure_logging(level: str) -> None:
    logging.basicConfig(stream=sys.stdout, level=level, format=LOG_FORMAT)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        server = make_server(args.host, args.port)
    except OSError as e:
        logger.error(f"Cannot listen on {args.host}:{args.port}: {e}")
        return 1

    logger.info(f"Users listener on {args.host}:{args.port}")
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
