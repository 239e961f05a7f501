"""apix template - named Jinja templates rendered from strings, maps and JSON trees."""

from typing import Any

import jinja2

from apix.errors import TemplateError


class TemplateEngine:
    """Registry of named templates rendered against a context.

    Every render registers its content under ``name`` first, so diagnostics
    point at the manifest field (``<file>#/headers.Authorization``).
    Registering a name again replaces the previous content.
    """

    def __init__(self):
        self._templates: dict[str, str] = {}
        self._env = jinja2.Environment(
            loader=jinja2.DictLoader(self._templates),
            undefined=jinja2.StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def add_template(self, name: str, content: str) -> None:
        self._templates[name] = content

    def render(self, name: str, context: dict[str, Any]) -> str:
        try:
            return self._env.get_template(name).render(context)
        except (jinja2.TemplateError, TypeError, ValueError, ArithmeticError) as e:
            # filters and expressions fail with plain Python errors too
            raise TemplateError(name, e) from e

    def render_string(self, name: str, content: str, context: dict[str, Any]) -> str:
        self.add_template(name, content)
        return self.render(name, context)

    def render_map(
        self,
        name: str,
        mapping: dict[str, str],
        context: dict[str, Any],
    ) -> dict[str, str]:
        """Render every value; keys and their order are kept."""
        return {
            key: self.render_string(f"{name}.{key}", value, context)
            for key, value in mapping.items()
        }

    def render_value(self, name: str, value: Any, context: dict[str, Any]) -> Any:
        """Render string leaves of a JSON tree; other scalars pass through."""
        if isinstance(value, dict):
            return {
                key: self.render_value(f"{name}.{key}", child, context)
                for key, child in value.items()
            }
        if isinstance(value, list):
            return [
                self.render_value(f"{name}.{index}", child, context)
                for index, child in enumerate(value)
            ]
        if isinstance(value, str):
            return self.render_string(name, value, context)
        return value
