"""Test helper functions."""

import json
from typing import Any, Dict, Optional

OWNER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_OWNER_ID = "22222222-2222-2222-2222-222222222222"
SESSION_TOKEN = "session-token-victor"
CYRA_TOKEN = "test-cyra-key"
TASKS_TOKEN = "test-tasks-key"


def bearer(token: str) -> Dict[str, str]:
    """Authorization header for a bearer token."""
    return {"Authorization": f"Bearer {token}"}


def create_vercel_request(
    method: str = "POST",
    path: str = "/api/cyra",
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    query: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Create a Vercel request object for testing."""
    request_headers = {"content-type": "application/json"}
    if headers:
        request_headers.update(headers)

    if body is None:
        raw_body = ""
    elif isinstance(body, (dict, list)):
        raw_body = json.dumps(body)
    else:
        raw_body = body

    return {
        "method": method,
        "path": path,
        "headers": request_headers,
        "body": raw_body,
        "query": query or {},
    }


def multipart_body(fields: Dict[str, str], file_field: str, file_name: str, content: bytes,
                   content_type: str = "application/octet-stream", boundary: str = "testboundary") -> bytes:
    """Encode a multipart/form-data body with one file part."""
    parts = []
    for name, value in fields.items():
        parts.append(
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
            f"{value}\r\n".encode("utf-8")
        )
    parts.append(
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{file_field}"; filename="{file_name}"\r\n'
        f"Content-Type: {content_type}\r\n\r\n".encode("utf-8")
        + content
        + b"\r\n"
    )
    parts.append(f"--{boundary}--\r\n".encode("utf-8"))
    return b"".join(parts)


def response_json(response: Dict[str, Any]) -> Any:
    return json.loads(response["body"]) if response.get("body") else None
