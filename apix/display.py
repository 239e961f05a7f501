"""apix display - syntax-highlighted output for bodies and HTTP header blocks."""

import json
from urllib.parse import urlparse

import click
import requests
from rich.console import Console
from rich.syntax import Syntax

from apix.http_utils import get_language, http_version


def _reindent_json(content: str) -> str:
    try:
        return json.dumps(json.loads(content), indent=2, ensure_ascii=False)
    except ValueError:
        return content


def pretty_print(
    content: str | bytes,
    theme: str,
    language: str,
    enable_color: bool = True,
) -> None:
    """Print content highlighted as ``language`` with the given theme.

    Without colour the text is echoed as is, so redirected output stays clean.
    JSON is re-indented when it parses.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    if language == "json":
        content = _reindent_json(content)
    if not enable_color:
        click.echo(content, nl=not content.endswith("\n"))
        return
    console = Console()
    console.print(Syntax(content, language, theme=theme, background_color="default", word_wrap=True))


def print_request(request: requests.PreparedRequest, theme: str, enable_color: bool = True) -> None:
    url = urlparse(request.url)
    lines = [f"{request.method} {request.path_url} HTTP/1.1", f"host: {url.hostname or ''}"]
    lines += [f"{key}: {value}" for key, value in request.headers.items()]
    pretty_print("\n".join(lines) + "\n", theme, "yaml", enable_color)

    # bodies are only shown when their content type maps to a language
    language = get_language(request.headers.get("Content-Type"))
    if language and isinstance(request.body, bytes | str) and request.body:
        click.echo()
        pretty_print(request.body, theme, language, enable_color)


def print_response(response: requests.Response, theme: str, enable_color: bool = True) -> None:
    version = http_version(getattr(response.raw, "version", None))
    lines = [f"{version} {response.status_code} {response.reason or ''}".rstrip()]
    lines += [f"{key}: {value}" for key, value in response.headers.items()]
    pretty_print("\n".join(lines) + "\n", theme, "yaml", enable_color)
