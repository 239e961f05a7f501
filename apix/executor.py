"""apix executor - HTTP request execution."""

import contextlib
import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, urlparse, urlunparse

import click
import requests

from apix import display
from apix.body import AdvancedBody, FileBody, JsonBody, body_to_string
from apix.core import DEFAULT_THEME
from apix.errors import HttpError, IoError
from apix.http_utils import get_language, merge_with_defaults, output_filename_from_url
from apix.progress import DOWNLOAD, UPLOAD, FileProgress

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class RequestOptions:
    """How to send the request and where its response goes.

    ``None`` means "not set", so annotation fallbacks can fill the gap.
    """

    verbose: bool = False
    theme: str = DEFAULT_THEME
    is_output_terminal: bool = False
    output_filename: str | None = None
    proxy_url: str | None = None
    proxy_login: str | None = None
    proxy_password: str | None = None
    timeout: float | None = None


class RequestResult:
    """Result of an HTTP request."""

    def __init__(self):
        self.status_code: int = 0
        self.headers: dict[str, str] = {}
        self.language: str | None = None
        self.text: str | None = None  # textual responses only
        self.output_path: Path | None = None
        self.elapsed_ms: float = 0


class _ProgressReader:
    """Sized file wrapper that reports each chunk the HTTP client reads."""

    def __init__(self, fileobj, size: int, progress):
        self._fileobj = fileobj
        self._size = size
        self._progress = progress

    def __len__(self) -> int:
        return self._size

    def read(self, size: int = -1) -> bytes:
        chunk = self._fileobj.read(size)
        if chunk:
            self._progress.advance(len(chunk))
        return chunk


def proxy_url_with_auth(
    proxy_url: str,
    login: str | None,
    password: str | None,
) -> str:
    """Embed basic-auth credentials in the proxy URL."""
    if not login:
        return proxy_url
    parsed = urlparse(proxy_url)
    host = parsed.netloc.rsplit("@", 1)[-1]
    credentials = quote(login, safe="")
    if password is not None:
        credentials += ":" + quote(password, safe="")
    return urlunparse(parsed._replace(netloc=f"{credentials}@{host}"))


def build_proxies(options: RequestOptions) -> dict[str, str]:
    if not options.proxy_url:
        return {}
    url = proxy_url_with_auth(options.proxy_url, options.proxy_login, options.proxy_password)
    return {"http": url, "https": url}


@contextlib.contextmanager
def _http_errors(timeout: float | None):
    """Turn requests exceptions into HttpError."""
    try:
        yield
    except requests.exceptions.Timeout as e:
        raise HttpError(f"Request timed out after {timeout}s") from e
    except requests.exceptions.ProxyError as e:
        raise HttpError(f"Proxy error: {e}") from e
    except requests.exceptions.SSLError as e:
        raise HttpError(f"TLS error: {e}") from e
    except requests.exceptions.ConnectionError as e:
        raise HttpError(f"Connection error: {e}") from e
    except requests.exceptions.RequestException as e:
        raise HttpError(f"Request failed: {e}") from e


@contextlib.contextmanager
def _request_body(body: AdvancedBody | None, headers, progress_factory):
    """Yield the payload to hand to requests, owning any file it streams from."""
    if body is None:
        yield None
    elif isinstance(body, FileBody):
        try:
            fileobj = open(body.path, "rb")  # noqa: SIM115
        except OSError as e:
            raise IoError(body.path, "Could not open file") from e
        with fileobj:
            size = os.fstat(fileobj.fileno()).st_size
            headers["Content-Length"] = str(size)
            with progress_factory(UPLOAD, body.path, size) as progress:
                yield _ProgressReader(fileobj, size, progress)
    else:
        if isinstance(body, JsonBody):
            headers["Content-Type"] = "application/json"
        yield body_to_string(body).encode("utf-8")


def _content_length(response: requests.Response) -> int:
    try:
        return int(response.headers.get("Content-Length") or 0)
    except ValueError:
        return 0


def _download(
    response: requests.Response,
    url: str,
    options: RequestOptions,
    progress_factory,
) -> Path | None:
    """Stream a binary body to a file, or to stdout when stdout is a terminal."""
    if options.output_filename:
        target = options.output_filename
    elif not options.is_output_terminal:
        target = output_filename_from_url(url)
    else:
        target = None

    total = _content_length(response)
    with progress_factory(DOWNLOAD, target or "<stdout>", total) as progress:
        if target is None:
            out = sys.stdout.buffer
            for chunk in response.iter_content(CHUNK_SIZE):
                out.write(chunk)
                progress.advance(len(chunk))
            out.flush()
            return None
        try:
            f = open(target, "wb")  # noqa: SIM115
        except OSError as e:
            raise IoError(target, "Could not create file") from e
        with f:
            for chunk in response.iter_content(CHUNK_SIZE):
                try:
                    f.write(chunk)
                except OSError as e:
                    raise IoError(target, "Could not write file") from e
                progress.advance(len(chunk))
    logger.debug("Downloaded response body to %s", target)
    return Path(target)


def _write_text(path: str, text: str) -> Path:
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
    except OSError as e:
        raise IoError(path, "Could not write file") from e
    logger.debug("Wrote response body to %s", path)
    return Path(path)


def execute_request(
    url: str,
    method: str,
    headers: dict[str, str] | None = None,
    queries: dict[str, str] | None = None,
    body: AdvancedBody | None = None,
    options: RequestOptions | None = None,
    progress_factory=FileProgress,
) -> RequestResult:
    """Send one HTTP request and print or save its response.

    - Caller headers override the defaults key by key
    - Queries are sent in the given order
    - Textual responses are pretty-printed or written to the output file
    - Responses without a Content-Type are streamed as binary
    - Raises HttpError / IoError / SerializationError; never retries
    """
    options = options or RequestOptions()
    result = RequestResult()
    req_headers = merge_with_defaults(headers)

    with requests.Session() as session, _http_errors(options.timeout):
        session.headers.clear()
        with _request_body(body, req_headers, progress_factory) as data:
            prepared = session.prepare_request(
                requests.Request(
                    method=method.upper(),
                    url=url,
                    headers=req_headers,
                    params=list(queries.items()) if queries else None,
                    data=data,
                ),
            )
            if options.verbose:
                display.print_request(prepared, options.theme, options.is_output_terminal)
                click.echo()

            # explicit proxies win over the *_PROXY environment variables
            settings = session.merge_environment_settings(
                prepared.url, build_proxies(options), True, None, None
            )
            logger.debug("Sending %s %s", prepared.method, prepared.url)
            start = time.monotonic()
            response = session.send(
                prepared,
                timeout=options.timeout,
                allow_redirects=True,
                **settings,
            )
            result.elapsed_ms = (time.monotonic() - start) * 1000

        with response:
            result.status_code = response.status_code
            result.headers = dict(response.headers)
            if options.verbose:
                display.print_response(response, options.theme, options.is_output_terminal)
                click.echo()

            result.language = get_language(response.headers.get("Content-Type"))
            if result.language is None:
                result.output_path = _download(response, url, options, progress_factory)
                return result

            text = response.text
            result.text = text
            if text:
                if options.output_filename:
                    result.output_path = _write_text(options.output_filename, text)
                else:
                    display.pretty_print(
                        text,
                        options.theme,
                        result.language,
                        options.is_output_terminal,
                    )

    return result
