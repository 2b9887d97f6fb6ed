"""Request/response plumbing shared by the Vercel serverless handlers."""

import asyncio
import base64
import json
from email.parser import BytesParser
from email.policy import HTTP
from http.server import BaseHTTPRequestHandler
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, urlsplit

from cyra_kanban.utils.errors import BadRequest, KanbanError
from cyra_kanban.utils.logging import correlation_context, get_structured_logger
from cyra_kanban.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)


class Request:
    """Transport-neutral view of an incoming HTTP request."""

    def __init__(
        self,
        method: str = "GET",
        path: str = "/",
        headers: Optional[Dict[str, str]] = None,
        query: Optional[Dict[str, str]] = None,
        body: bytes = b"",
    ):
        self.method = method.upper()
        self.path = path
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.query = dict(query or {})
        self.body = body
        self._json = None

    @classmethod
    def from_dict(cls, request: dict) -> "Request":
        """Build from the ``{method, path, headers, body, query}`` event shape."""
        body = request.get("body") or b""
        if request.get("isBase64Encoded") and isinstance(body, str):
            body = base64.b64decode(body)
        elif isinstance(body, str):
            body = body.encode("utf-8")
        return cls(
            method=request.get("method", "GET"),
            path=request.get("path", "/"),
            headers=request.get("headers") or {},
            query=request.get("query") or {},
            body=body,
        )

    @classmethod
    def from_handler(cls, h: BaseHTTPRequestHandler) -> "Request":
        parts = urlsplit(h.path)
        query = {k: v[0] for k, v in parse_qs(parts.query).items()}
        content_length = int(h.headers.get("Content-Length", 0) or 0)
        body = h.rfile.read(content_length) if content_length > 0 else b""
        return cls(
            method=h.command,
            path=parts.path,
            headers=dict(h.headers.items()),
            query=query,
            body=body,
        )

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def resource_id(self, base_path: str, body: Optional[dict] = None) -> Optional[str]:
        """Id from ``{base_path}/<id>``, else ``?id=``, else the body's ``id``."""
        path = self.path.rstrip("/")
        prefix = base_path.rstrip("/") + "/"
        if path.startswith(prefix) and "/" not in path[len(prefix):]:
            return path[len(prefix):] or None
        return self.query.get("id") or (body or {}).get("id")

    def bearer_token(self) -> Optional[str]:
        auth = self.header("Authorization") or ""
        if not auth.startswith("Bearer "):
            return None
        token = auth[7:].strip()
        return token or None

    def json(self) -> dict:
        """Parse the body as a JSON object."""
        if self._json is None:
            if not self.body:
                self._json = {}
            else:
                try:
                    data = json.loads(self.body.decode("utf-8"))
                except (ValueError, UnicodeDecodeError) as e:
                    raise BadRequest("Invalid JSON body") from e
                if not isinstance(data, dict):
                    raise BadRequest("Invalid JSON body")
                self._json = data
        return self._json

    def form(self) -> Dict[str, Any]:
        """
        Parse a multipart/form-data body.

        File fields come back as ``{"filename", "content_type", "content"}``
        dicts, plain fields as strings.
        """
        content_type = self.header("Content-Type") or ""
        if not content_type.startswith("multipart/form-data"):
            raise BadRequest("Expected multipart/form-data")

        message = BytesParser(policy=HTTP).parsebytes(
            f"Content-Type: {content_type}\r\n\r\n".encode("utf-8") + self.body
        )
        if not message.is_multipart():
            raise BadRequest("Malformed multipart body")

        fields: Dict[str, Any] = {}
        for part in message.iter_parts():
            name = part.get_param("name", header="content-disposition")
            if not name:
                continue
            payload = part.get_payload(decode=True) or b""
            filename = part.get_filename()
            if filename is not None:
                fields[name] = {
                    "filename": filename,
                    "content_type": part.get_content_type(),
                    "content": payload,
                }
            else:
                fields[name] = payload.decode(part.get_content_charset() or "utf-8")
        return fields


def json_response(status: int, payload: Any, headers: Optional[Dict[str, str]] = None) -> dict:
    """Build a JSON response in the serverless ``statusCode/headers/body`` shape."""
    response_headers = {"Content-Type": "application/json"}
    if headers:
        response_headers.update(headers)
    return {
        "statusCode": status,
        "headers": response_headers,
        "body": json.dumps(payload, default=str),
    }


def error_response(status: int, message: str, **extra: Any) -> dict:
    payload = {"error": message}
    payload.update(extra)
    return json_response(status, payload)


def redirect(location: str, status: int = 307) -> dict:
    return {
        "statusCode": status,
        "headers": {"Location": location},
        "body": "",
    }


def method_not_allowed() -> dict:
    return error_response(405, "Method not allowed")


def dispatch(route: Callable[[Request], dict], request: Request) -> dict:
    """Run a route inside the error boundary; nothing escapes as an exception."""
    LoggingConfig.setup_logging()
    with correlation_context(request.header(LoggingConfig.LOG_CORRELATION_ID_HEADER)):
        try:
            return route(request)
        except KanbanError as e:
            logger.warning(
                "Request failed",
                method=request.method,
                path=request.path,
                status=e.status_code,
                error=e.message
            )
            return error_response(e.status_code, e.message)
        except Exception as e:
            logger.error(
                "Unhandled error",
                exc_info=True,
                method=request.method,
                path=request.path,
                error=str(e)
            )
            return error_response(500, "Internal server error")


def run_async(coro):
    """Run a service coroutine from a synchronous handler."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_closed():
            raise RuntimeError("event loop is closed")
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


class VercelHandler(BaseHTTPRequestHandler):
    """
    Base class for Vercel serverless function handlers.

    Subclasses set ``route = staticmethod(fn)`` where ``fn(request)`` returns
    a ``json_response``-shaped dict.
    """

    route: Callable[[Request], dict]

    @classmethod
    def invoke(cls, request: dict) -> dict:
        """Handle an event-shaped request dict without a socket."""
        return dispatch(cls.route, Request.from_dict(request))

    def _handle(self):
        response = dispatch(self.route, Request.from_handler(self))
        self.send_response(response["statusCode"])
        for name, value in response.get("headers", {}).items():
            self.send_header(name, value)
        self.end_headers()
        body = response.get("body") or ""
        self.wfile.write(body.encode("utf-8") if isinstance(body, str) else body)

    def do_GET(self):
        self._handle()

    def do_POST(self):
        self._handle()

    def do_PUT(self):
        self._handle()

    def do_PATCH(self):
        self._handle()

    def do_DELETE(self):
        self._handle()
