"""apix render - turn a Request manifest plus runtime inputs into a concrete request.

Rendering is strictly ordered; each step can use what the previous ones put
in the template context:

1. context = manifest, parameters, env
2. annotations (execution directives) rendered against it
3. spec ``context`` rendered and added as ``context``
4. url, method, headers, queries
5. body
"""

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from apix import executor
from apix.body import AdvancedBody, FileBody, JsonBody
from apix.executor import RequestOptions, RequestResult
from apix.manifests import Manifest
from apix.parameters import Prompter, resolve_parameters
from apix.template import TemplateEngine

logger = logging.getLogger(__name__)

CONVERT_BODY_STRING_TO_JSON = "apix.io/convert-body-string-to-json"
BODY_FILE = "apix.io/body-file"
OUTPUT_FILE = "apix.io/output-file"
PROXY_URL = "apix.io/proxy-url"
PROXY_LOGIN = "apix.io/proxy-login"
PROXY_PASSWORD = "apix.io/proxy-password"


@dataclass
class RequestParams:
    url: str
    method: str
    headers: dict[str, str]
    queries: dict[str, str]
    body: AdvancedBody | None
    options: RequestOptions


def _is_true(value: str | None) -> bool:
    return value == "true"


def _fallback(cli_value: str | None, annotation: str | None) -> str | None:
    return cli_value if cli_value is not None else (annotation or None)


def effective_options(options: RequestOptions, annotations: dict[str, str]) -> RequestOptions:
    """Fill the options the CLI left unset from rendered annotations."""
    return dataclasses.replace(
        options,
        output_filename=_fallback(options.output_filename, annotations.get(OUTPUT_FILE)),
        proxy_url=_fallback(options.proxy_url, annotations.get(PROXY_URL)),
        proxy_login=_fallback(options.proxy_login, annotations.get(PROXY_LOGIN)),
        proxy_password=_fallback(options.proxy_password, annotations.get(PROXY_PASSWORD)),
    )


def render_body(
    engine: TemplateEngine,
    file: str,
    body: Any,
    annotations: dict[str, str],
    context: dict[str, Any],
) -> AdvancedBody | None:
    name = f"{file}#/body"
    if isinstance(body, str) and _is_true(annotations.get(CONVERT_BODY_STRING_TO_JSON)):
        text = engine.render_string(name, body, context)
        # Rendered text that is not JSON is still sent, as a JSON string.
        try:
            return JsonBody(json.loads(text))
        except ValueError:
            return JsonBody(text)
    if body is not None:
        return JsonBody(engine.render_value(name, body, context))
    body_file = annotations.get(BODY_FILE)
    if body_file:
        return FileBody(body_file)
    return None


def render_request(
    file: str,
    manifest: Manifest,
    cli_params: dict[str, str] | None = None,
    options: RequestOptions | None = None,
    env: dict[str, str] | None = None,
    engine: TemplateEngine | None = None,
    prompter: Prompter | None = None,
) -> RequestParams:
    """Render every templated field of a Request manifest.

    ``file`` prefixes template names, so errors read ``<file>#/url``.
    Raises ManifestError for other kinds, ParameterError and TemplateError.
    """
    spec = manifest.request_spec()
    options = options or RequestOptions()
    env = dict(os.environ) if env is None else env
    engine = engine or TemplateEngine()

    parameters = resolve_parameters(spec.parameters, cli_params, prompter, spec.definitions)
    context: dict[str, Any] = {
        "manifest": manifest.to_dict(),
        "parameters": parameters,
        "env": env,
    }
    annotations = engine.render_map(
        f"{file}#/metadata/annotations",
        manifest.metadata.annotations,
        context,
    )
    context["context"] = engine.render_value(f"{file}#/context", spec.context, context)

    template = spec.request
    url = engine.render_string(f"{file}#/url", template.url, context)
    method = engine.render_string(f"{file}#/method", template.method, context)
    headers = engine.render_map(f"{file}#/headers", template.headers, context)
    queries = engine.render_map(f"{file}#/queries", template.queries, context)
    body = render_body(engine, file, template.body, annotations, context)
    logger.debug("Rendered %s: %s %s", file, method, url)

    return RequestParams(
        url=url,
        method=method,
        headers=headers,
        queries=queries,
        body=body,
        options=effective_options(options, annotations),
    )


def handle_execute(
    file: str,
    manifest: Manifest,
    cli_params: dict[str, str] | None,
    options: RequestOptions,
    env: dict[str, str] | None = None,
    prompter: Prompter | None = None,
) -> RequestResult:
    """Render a Request manifest and send it."""
    params = render_request(file, manifest, cli_params, options, env, prompter=prompter)
    return executor.execute_request(
        url=params.url,
        method=params.method,
        headers=params.headers or None,
        queries=params.queries or None,
        body=params.body,
        options=params.options,
    )
