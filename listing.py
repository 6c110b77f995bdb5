"""HTML directory index for directories without an index.html."""

import html
import locale
import os
import posixpath
from pathlib import Path
from urllib.parse import quote

LISTING_STYLE = (
    "body{font-family:system-ui,-apple-system,Segoe UI,Roboto,Ubuntu,Cantarell,Noto Sans,sans-serif;"
    "line-height:1.5;padding:24px;max-width:900px;margin:0 auto}"
    "h1{font-size:20px;margin:0 0 12px}"
    "ul{list-style:none;padding:0;margin:0}"
    "li{padding:6px 0;border-bottom:1px solid #eee}"
    "a{text-decoration:none;color:#0366d6}"
    "a:hover{text-decoration:underline}"
)


def _sort_key(entry: os.DirEntry) -> tuple[str, str]:
    # Case-folded first so "a.txt" sorts before "B.txt" even under the C locale.
    return locale.strxfrm(entry.name.casefold()), entry.name


def _link_base(request_path: str) -> str:
    base = "/" + posixpath.normpath(request_path).lstrip("/")
    if base == "/":
        return base
    return base + "/"


def list_entries(directory: Path) -> list[tuple[str, bool]]:
    """Return ``(name, is_directory)`` for each direct child, sorted by name."""
    with os.scandir(directory) as entries:
        ordered = sorted(entries, key=_sort_key)
        return [(entry.name, entry.is_dir()) for entry in ordered]


def render_listing(directory: Path, request_path: str, title_path: str | None = None) -> str:
    """Render the index page for ``directory``.

    ``request_path`` is the percent-encoded URL path ending in ``/``; links are
    built by appending each encoded entry name to its normalized form.
    ``title_path`` is the human-readable path shown in the heading and
    defaults to ``request_path``.
    """
    link_base = _link_base(request_path)
    items = []
    for name, is_directory in list_entries(directory):
        slash = "/" if is_directory else ""
        href = link_base + quote(name) + slash
        items.append(
            f'<li><a href="{html.escape(href)}">{html.escape(name)}{slash}</a></li>'
        )

    title = html.escape(f"Index of {title_path or request_path}")
    return (
        "<!doctype html><html><head>"
        '<meta charset="utf-8">'
        '<meta name="viewport" content="width=device-width,initial-scale=1">'
        f"<title>{title}</title>"
        f"<style>{LISTING_STYLE}</style>"
        "</head><body>"
        f"<h1>{title}</h1>"
        f"<ul>{''.join(items)}</ul>"
        "</body></html>"
    )
