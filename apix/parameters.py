"""apix parameters - resolve manifest parameters from CLI values or prompts."""

import json
import logging
import sys
from collections.abc import Callable
from typing import Any

import click
import jsonschema

from apix.errors import ParameterError
from apix.manifests import Parameter

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = {"type": "string"}


class Prompter:
    """Interactive input on the terminal, via click prompts.

    Prompts go to stderr so stdout only carries the response. Without a
    terminal on stdin every prompt fails instead of waiting forever.
    """

    def __init__(self, interactive: bool | None = None):
        self.interactive = sys.stdin.isatty() if interactive is None else interactive

    def _require_terminal(self, name: str) -> None:
        if not self.interactive:
            raise ParameterError(
                name,
                f"a value is required but no interactive terminal is available; "
                f"pass it with -p {name}:<value>",
            )

    def ask_text(
        self,
        name: str,
        label: str,
        default: str | None = None,
        convert: Callable[[str], Any] | None = None,
    ) -> Any:
        self._require_terminal(name)
        try:
            return click.prompt(label, default=default, value_proc=convert, err=True)
        except click.Abort as e:
            raise ParameterError(name, "prompt aborted") from e

    def ask_password(self, name: str, label: str) -> str:
        self._require_terminal(name)
        try:
            return click.prompt(label, hide_input=True, err=True)
        except click.Abort as e:
            raise ParameterError(name, "prompt aborted") from e


def input_to_value(text: str) -> Any:
    """Read typed input as JSON, or as a plain string when it is not JSON."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def compile_schema(
    parameter: Parameter,
    definitions: dict[str, Any] | None = None,
) -> jsonschema.Draft7Validator:
    """Build a draft 7 validator for the parameter schema.

    Manifest-level ``definitions`` are made available so ``$ref:
    '#/definitions/<name>'`` resolves.
    """
    schema = parameter.schema_ if parameter.schema_ is not None else DEFAULT_SCHEMA
    if definitions and isinstance(schema, dict):
        schema = {**schema, "definitions": {**definitions, **schema.get("definitions", {})}}
    try:
        jsonschema.Draft7Validator.check_schema(schema)
    except jsonschema.SchemaError as e:
        raise ParameterError(parameter.name, f"invalid schema: {e.message}") from e
    return jsonschema.Draft7Validator(schema)


def schema_errors(validator: jsonschema.Draft7Validator, value: Any) -> str | None:
    """Return every violation, one per line, or None when the value is valid."""
    errors = list(validator.iter_errors(value))
    if not errors:
        return None
    lines = ["Invalid input:"]
    lines += [f"cause {index}: {error.message}" for index, error in enumerate(errors)]
    return "\n".join(lines)


def ask_parameter(
    parameter: Parameter,
    prompter: Prompter,
    definitions: dict[str, Any] | None = None,
) -> Any:
    validator = compile_schema(parameter, definitions)
    label = parameter.name
    if parameter.description:
        label = f"{parameter.name} ({parameter.description})"

    if parameter.password:
        return prompter.ask_password(parameter.name, label)

    def convert(text: str) -> Any:
        value = input_to_value(text)
        message = schema_errors(validator, value)
        if message:
            raise click.BadParameter(message)
        return value

    default = None
    if isinstance(validator.schema, dict):
        default = validator.schema.get("default")
    if default is not None and not isinstance(default, str):
        default = json.dumps(default)
    return prompter.ask_text(parameter.name, label, default=default, convert=convert)


def resolve_parameters(
    parameters: list[Parameter],
    cli_params: dict[str, str] | None = None,
    prompter: Prompter | None = None,
    definitions: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Resolve each declared parameter.

    A CLI value always wins and is used as given (no schema check). Required
    parameters without a CLI value are prompted for. Anything else is left
    out of the result.
    """
    prompter = prompter or Prompter()
    resolved: dict[str, Any] = {}
    for parameter in parameters:
        if cli_params is not None and parameter.name in cli_params:
            resolved[parameter.name] = cli_params[parameter.name]
        elif parameter.required:
            logger.debug("Prompting for parameter %s", parameter.name)
            resolved[parameter.name] = ask_parameter(parameter, prompter, definitions)
    return resolved
