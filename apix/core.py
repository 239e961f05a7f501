"""apix core - config loading, env loading, manifest files, CLI value parsing."""

import logging
import os
import re
from pathlib import Path
from urllib.parse import urlparse

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from apix.errors import IoError, ManifestError, SerializationError
from apix.manifests import ConfigurationKind, Manifest

logger = logging.getLogger(__name__)

GLOBAL_DIR = Path.home() / ".apix"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yml"

DEFAULT_THEME = "monokai"
CONFIG_DEFAULTS = {"theme": DEFAULT_THEME}

MANIFEST_EXTENSIONS = (".yaml", ".yml")

PARAM_RE = re.compile(r"^([\w-]+):(.*)$")


def resolve_path(
    candidates: list[Path],
    default: Path | None = None,
) -> Path | None:
    """Return the first existing path from candidates, else default."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return default


# ── Configuration ────────────────────────────────────────────────────────


class Config:
    """User configuration, stored as a Configuration manifest.

    Created once per invocation and handed to whatever needs it.
    """

    def __init__(self, values: dict[str, str] | None = None, path: Path | None = None):
        self.path = Path(path) if path else GLOBAL_CONFIG
        self._values: dict[str, str] = dict(values or {})
        for key, value in CONFIG_DEFAULTS.items():
            self._values.setdefault(key, value)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Config":
        """Load the config file. Missing or empty files give the defaults."""
        path = Path(path) if path else GLOBAL_CONFIG
        if not path.exists():
            return cls(path=path)
        try:
            content = path.read_text()
        except OSError as e:
            raise IoError(path, "Could not read config file") from e
        if not content.strip():
            return cls(path=path)
        manifest = _parse_manifest(content, f"config file '{path}'")
        if not isinstance(manifest.kind, ConfigurationKind):
            raise ManifestError(
                f"Invalid config file '{path}': expected kind Configuration, "
                f"got {manifest.kind.kind}"
            )
        logger.debug("Loaded config from %s", path)
        return cls(manifest.kind.spec.root, path=path)

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> str | None:
        """Set a key and return the value it replaced, if any."""
        old = self._values.get(key)
        self._values[key] = value
        return old

    def delete(self, key: str) -> str | None:
        return self._values.pop(key, None)

    def items(self) -> dict[str, str]:
        return dict(self._values)

    @property
    def theme(self) -> str:
        return self._values.get("theme") or DEFAULT_THEME

    def to_yaml(self) -> str:
        return yaml.safe_dump(self._values, sort_keys=False, allow_unicode=True)

    def save(self) -> Path:
        manifest = Manifest.new_configuration(self._values)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                yaml.safe_dump(manifest.to_dict(), f, sort_keys=False, allow_unicode=True)
        except OSError as e:
            raise IoError(self.path, "Could not write config file") from e
        logger.debug("Saved config to %s", self.path)
        return self.path


def load_env(env_file: str | None, base_dir: str = ".") -> dict[str, str]:
    """Load .env file and merge with os.environ.

    Returns combined dict with .env values taking precedence over os.environ
    for explicit vars, but os.environ available as fallback.
    """
    env = dict(os.environ)
    if env_file:
        dotenv_path = Path(base_dir) / env_file
        if dotenv_path.exists():
            dotenv_vars = dotenv_values(str(dotenv_path))
            env.update({k: v for k, v in dotenv_vars.items() if v is not None})
        else:
            logger.debug("env file %s not found, using process environment only", dotenv_path)
    return env


# ── Manifests ────────────────────────────────────────────────────────────


def _parse_manifest(content: str, origin: str) -> Manifest:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SerializationError(f"Could not parse {origin}: {e}") from e
    if not isinstance(data, dict):
        raise SerializationError(f"Could not parse {origin}: not a YAML mapping")
    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise SerializationError(f"Invalid manifest in {origin}:\n{e}") from e


def load_manifest(path: str | Path) -> Manifest:
    """Read and parse a single manifest file."""
    path = Path(path)
    try:
        content = path.read_text()
    except OSError as e:
        raise IoError(path, "Could not read manifest") from e
    manifest = _parse_manifest(content, f"manifest '{path}'")
    logger.debug("Loaded %s manifest '%s' from %s", manifest.kind.kind, manifest.name, path)
    return manifest


def find_manifest(name_or_path: str) -> tuple[Path, Manifest] | None:
    """Locate a manifest by exact path or by name with a .yaml/.yml extension."""
    candidates = [Path(name_or_path)]
    candidates += [Path(name_or_path + ext) for ext in MANIFEST_EXTENSIONS]
    found = resolve_path([c for c in candidates if not c.is_dir()])
    if found is None:
        return None
    return found, load_manifest(found)


def manifest_search_paths(name: str) -> list[str]:
    """Return human-readable list of paths checked for a manifest."""
    return [name] + [f"{name}{ext}" for ext in MANIFEST_EXTENSIONS]


# ── CLI values ───────────────────────────────────────────────────────────


def parse_param(spec: str, kind: str = "param") -> tuple[str, str]:
    """Split a ``name:value`` string. The value may itself contain colons."""
    m = PARAM_RE.match(spec)
    if not m:
        raise ValueError(
            f'Bad {kind} format: "{spec}", should be of the form "<name>:<value>"'
        )
    return m.group(1), m.group(2)


def parse_params(specs: tuple[str, ...] | list[str], kind: str = "param") -> dict[str, str]:
    """Parse repeated ``name:value`` strings, keeping their order."""
    params: dict[str, str] = {}
    for spec in specs:
        name, value = parse_param(spec, kind)
        params[name] = value
    return params


def validate_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Unsupported URL '{url}': apix only supports http(s) protocols")
    if not parsed.netloc:
        raise ValueError(f"Invalid URL '{url}': missing host")
    return url
