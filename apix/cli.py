"""apix CLI - render and send HTTP requests described by YAML manifests."""

import contextlib
import logging
import sys
from pathlib import Path

import click

from apix import __version__
from apix.errors import ApixError

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")

TOOL_HELP = """\
apix - HTTP client driven by YAML manifests.

\b
REQUEST MANIFESTS
─────────────────
  apix exec get-user -p id:42
  apix exec -f requests/create-user.yaml -p name:John -o user.json

  Manifest lookup: exact path, then NAME.yaml, then NAME.yml.
  Required parameters without -p are asked for on the terminal.

\b
AD-HOC REQUESTS
───────────────
  apix get https://api.example.com/users -q page:2
  apix post https://api.example.com/users -b '{"name":"John"}'
  apix put https://api.example.com/files/a.bin -f a.bin

\b
TEMPLATES
─────────
  Manifest fields are Jinja templates rendered with:
  \b
  {{parameters.NAME}}   resolved parameter
  {{env.VAR}}           environment variable (plus --env-file / env_file)
  {{context.KEY}}       rendered spec.context entry
  {{manifest...}}       the manifest itself

\b
CONFIGURATION
─────────────
  ~/.apix/config.yml, edited with `apix config set theme dracula`.
"""


# ── Helpers ──────────────────────────────────────────────────────────────


@contextlib.contextmanager
def _handle_errors():
    """Print an ApixError with its cause chain and exit 1."""
    try:
        yield
    except ApixError as e:
        message = str(e)
        click.echo(f"ERROR: {message}", err=True)
        cause = e.__cause__
        while cause is not None:
            if str(cause) not in message:
                click.echo(f"  caused by: {cause}", err=True)
            cause = cause.__cause__
        sys.exit(1)


def _name_value_callback(kind):
    def callback(ctx, param, value):
        from apix.core import parse_params

        try:
            return parse_params(value, kind)
        except ValueError as e:
            raise click.BadParameter(str(e)) from e

    return callback


def _url_callback(ctx, param, value):
    from apix.core import validate_url

    try:
        return validate_url(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _request_options(f):
    """Options shared by every command that sends a request."""
    decorators = [
        click.option(
            "-o",
            "--output",
            "output",
            type=click.Path(dir_okay=False),
            default=None,
            help="Write the response body to this file.",
        ),
        click.option("-x", "--proxy", "proxy", default=None, help="Proxy URL."),
        click.option("--proxy-login", default=None, help="Proxy basic-auth login."),
        click.option("--proxy-password", default=None, help="Proxy basic-auth password."),
        click.option(
            "-v",
            "--verbose",
            is_flag=True,
            default=False,
            help="Print request and response headers.",
        ),
        click.option(
            "--timeout",
            type=float,
            default=None,
            help="Request timeout in seconds. Default: none.",
        ),
    ]
    for decorator in reversed(decorators):
        f = decorator(f)
    return f


def _build_options(config, output, proxy, proxy_login, proxy_password, verbose, timeout):
    from apix.executor import RequestOptions

    return RequestOptions(
        verbose=verbose,
        theme=config.theme,
        is_output_terminal=sys.stdout.isatty(),
        output_filename=output,
        proxy_url=proxy,
        proxy_login=proxy_login,
        proxy_password=proxy_password,
        timeout=timeout,
    )


# ── Main group ───────────────────────────────────────────────────────────


@click.group(help=TOOL_HELP, context_settings={"max_content_width": 88})
@click.version_option(__version__, prog_name="apix")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file path. Default: ~/.apix/config.yml.",
)
@click.option("--debug", is_flag=True, default=False, help="Log debug messages to stderr.")
@click.pass_context
def main(ctx, config_file, debug):
    from apix.core import Config

    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )
    with _handle_errors():
        ctx.obj = Config.load(config_file)


@main.command("exec")
@click.argument("name", required=False)
@click.option(
    "-f",
    "--file",
    "manifest_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path of the Request manifest to execute.",
)
@click.option(
    "-p",
    "--param",
    "params",
    multiple=True,
    callback=_name_value_callback("param"),
    help="Parameter as name:value. Repeatable.",
)
@click.option(
    "--env-file",
    default=None,
    help="Load this .env file into the env template context. Default: config env_file.",
)
@_request_options
@click.pass_obj
def exec_command(config, name, manifest_file, params, env_file, **request_opts):
    """Render a Request manifest and send it."""
    from apix.core import find_manifest, load_env, load_manifest, manifest_search_paths
    from apix.parameters import Prompter
    from apix.render import handle_execute

    if bool(name) == bool(manifest_file):
        raise click.UsageError("Give either a manifest NAME or -f FILE.")

    with _handle_errors():
        if manifest_file:
            path, manifest = Path(manifest_file), load_manifest(manifest_file)
        else:
            found = find_manifest(name)
            if found is None:
                searched = manifest_search_paths(name)
                click.echo(
                    f"Manifest '{name}' not found.\nSearched:\n"
                    + "\n".join(f"  - {p}" for p in searched),
                    err=True,
                )
                sys.exit(1)
            path, manifest = found

        env = load_env(env_file or config.get("env_file"))
        options = _build_options(config, **request_opts)
        handle_execute(str(path), manifest, params, options, env, Prompter())


def _method_command(method):
    @click.command(method, help=f"Send a {method.upper()} request to URL.")
    @click.argument("url", callback=_url_callback)
    @click.option(
        "-H",
        "--header",
        "headers",
        multiple=True,
        callback=_name_value_callback("header"),
        help="Header as name:value. Repeatable.",
    )
    @click.option(
        "-q",
        "--query",
        "queries",
        multiple=True,
        callback=_name_value_callback("query"),
        help="Query parameter as name:value. Repeatable, order is kept.",
    )
    @click.option("-b", "--body", default=None, help="Request body, sent as given.")
    @click.option(
        "-f",
        "--file",
        "body_file",
        type=click.Path(dir_okay=False),
        default=None,
        help="Stream the request body from a file.",
    )
    @_request_options
    @click.pass_obj
    def command(config, url, headers, queries, body, body_file, **request_opts):
        from apix.body import FileBody, StringBody
        from apix.executor import execute_request

        if body is not None and body_file is not None:
            raise click.UsageError("-b/--body and -f/--file are mutually exclusive.")
        if body_file is not None:
            request_body = FileBody(body_file)
        elif body is not None:
            request_body = StringBody(body)
        else:
            request_body = None

        with _handle_errors():
            execute_request(
                url=url,
                method=method,
                headers=headers or None,
                queries=queries or None,
                body=request_body,
                options=_build_options(config, **request_opts),
            )

    return command


for _method in HTTP_METHODS:
    main.add_command(_method_command(_method))


# ── Config commands ──────────────────────────────────────────────────────


@main.group("config")
def config_group():
    """Show and edit the apix configuration."""


@config_group.command("list")
@click.pass_obj
def config_list(config):
    """Print every config value."""
    click.echo(config.to_yaml(), nl=False)


@config_group.command("get")
@click.argument("name")
@click.pass_obj
def config_get(config, name):
    """Print one config value."""
    value = config.get(name)
    if value is None:
        click.echo(f"ERROR: Config key '{name}' is not set.", err=True)
        sys.exit(1)
    click.echo(value)


@config_group.command("set")
@click.argument("name")
@click.argument("value")
@click.pass_obj
def config_set(config, name, value):
    """Set a config value and save the file."""
    old = config.set(name, value)
    with _handle_errors():
        path = config.save()
    if old is not None and old != value:
        click.echo(click.style(f"- {name}: {old}", fg="red"))
        click.echo(click.style(f"+ {name}: {value}", fg="green"))
    click.echo(f"Saved {path}")


@config_group.command("delete")
@click.argument("name")
@click.pass_obj
def config_delete(config, name):
    """Remove a config value and save the file."""
    old = config.delete(name)
    if old is None:
        click.echo(f"ERROR: Config key '{name}' is not set.", err=True)
        sys.exit(1)
    with _handle_errors():
        path = config.save()
    click.echo(f"Deleted '{name}' from {path}")


if __name__ == "__main__":
    main()
