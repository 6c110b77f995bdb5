"""Turn a resolved request path into a file, index or listing response."""

from pathlib import Path

from config import HTML_CONTENT_TYPE, TEXT_CONTENT_TYPE, ServerConfig
from listing import render_listing
from path_resolver import PathKind, ResolvedPath
from response import HTTPResponse

NO_STORE_HEADERS: dict[str, str] = {"Cache-Control": "no-store"}
INDEX_FILE = "index.html"


def send(status_code: int, body: bytes | str, headers: dict[str, str] | None = None) -> HTTPResponse:
    """Build a response with caching disabled, merged with ``headers``."""
    if headers is None:
        return HTTPResponse.plain(status_code, body, **NO_STORE_HEADERS)
    return HTTPResponse(
        status_code=status_code,
        headers={**NO_STORE_HEADERS, **headers},
        body=body,
    )


def _index_file(directory: Path, config: ServerConfig) -> Path | None:
    index_path = directory / INDEX_FILE
    if not index_path.is_file():
        return None
    if not index_path.resolve().is_relative_to(config.root):
        return None
    return index_path


def _listing_response(directory: Path, resolved: ResolvedPath) -> HTTPResponse:
    title_path = resolved.decoded_path.rstrip("/") + "/"
    html = render_listing(directory, resolved.listing_path, title_path)
    return send(200, html, {"Content-Type": HTML_CONTENT_TYPE})


def respond(resolved: ResolvedPath, config: ServerConfig) -> HTTPResponse:
    """Pick the response for an already resolved request.

    I/O errors are not handled here; the request boundary in server.py turns
    them into 500 responses.
    """
    if resolved.kind is PathKind.OUTSIDE_ROOT:
        return send(
            403,
            "Forbidden",
            {"Content-Type": TEXT_CONTENT_TYPE, "X-Content-Type-Options": "nosniff"},
        )

    if resolved.kind is PathKind.DIRECTORY and resolved.path is not None:
        index_path = _index_file(resolved.path, config)
        if index_path is not None:
            return send(200, index_path.read_bytes(), {"Content-Type": HTML_CONTENT_TYPE})
        return _listing_response(resolved.path, resolved)

    if resolved.kind is PathKind.FILE and resolved.path is not None:
        content_type = config.content_type_for(resolved.path)
        return send(200, resolved.path.read_bytes(), {"Content-Type": content_type})

    if resolved.url_path == "/" and _index_file(config.root, config) is None:
        return _listing_response(config.root, resolved)

    return send(404, "Not Found")
