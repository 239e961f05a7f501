"""apix manifests - versioned manifest envelope and its kind payloads.

On disk a manifest is a YAML document::

    apiVersion: apix.io/v1
    kind: Request
    metadata:
      name: get-user
      annotations:
        apix.io/output-file: "user-{{parameters.id}}.json"
    spec:
      parameters:
        - name: id
          required: true
      request:
        method: GET
        url: "https://api.example.com/users/{{parameters.id}}"

``kind`` selects exactly one ``spec`` payload. In memory the pair is held as a
single tagged value (``Manifest.kind``) so a manifest can never carry two
payloads at once.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, RootModel, model_validator

from apix.errors import ManifestError

API_VERSION = "apix.io/v1"


def _stringify(value: Any) -> Any:
    """YAML turns `true` and `42` into bool/int; header-ish maps want text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return value


def _stringify_map(value: Any) -> Any:
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): _stringify(v) for k, v in value.items()}
    return value


StrMap = Annotated[dict[str, str], BeforeValidator(_stringify_map)]


def _default_schema() -> dict[str, Any]:
    return {"type": "string"}


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class Metadata(_Model):
    """Manifest metadata. Keys other than the known ones land in ``extensions``."""

    name: str
    labels: StrMap = Field(default_factory=dict)
    annotations: StrMap = Field(default_factory=dict)
    extensions: StrMap = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_extensions(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = {"name", "labels", "annotations", "extensions"}
        extra = {k: v for k, v in data.items() if k not in known}
        if not extra:
            return data
        data = {k: v for k, v in data.items() if k in known}
        data["extensions"] = {**(data.get("extensions") or {}), **extra}
        return data

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.labels:
            data["labels"] = dict(self.labels)
        if self.annotations:
            data["annotations"] = dict(self.annotations)
        data.update(self.extensions)
        return data


class Parameter(_Model):
    """A named value the request needs before it can be rendered."""

    name: str
    required: bool = False
    password: bool = False
    description: str | None = None
    schema_: Any = Field(default_factory=_default_schema, alias="schema")


class RequestTemplate(_Model):
    method: str = "GET"
    url: str
    headers: StrMap = Field(default_factory=dict)
    queries: StrMap = Field(default_factory=dict)
    body: Any = None


class RequestSpec(_Model):
    definitions: dict[str, Any] = Field(default_factory=dict)
    parameters: list[Parameter] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    request: RequestTemplate


class Api(_Model):
    url: str = ""
    version: str = ""
    description: str | None = None


class Configuration(RootModel[dict[str, str]]):
    """Flat string map stored in ``~/.apix/config.yml``."""

    @model_validator(mode="before")
    @classmethod
    def _stringify_values(cls, data: Any) -> Any:
        return _stringify_map(data)


class Step(_Model):
    name: str
    description: str | None = None
    context: StrMap = Field(default_factory=dict)
    if_: str | None = Field(None, alias="if")
    request: RequestTemplate


class Story(_Model):
    name: str
    needs: str | None = None
    description: str | None = None
    context: dict[str, dict[str, Any]] = Field(default_factory=dict)
    steps: list[Step]


class Stories(_Model):
    definitions: dict[str, Any] = Field(default_factory=dict)
    parameters: list[Parameter] | None = None
    stories: list[Story]


# ── Kind payloads ────────────────────────────────────────────────────────


class ApiKind(_Model):
    kind: Literal["Api"] = "Api"
    spec: Api = Field(default_factory=Api)


class ConfigurationKind(_Model):
    kind: Literal["Configuration"] = "Configuration"
    spec: Configuration = Field(default_factory=lambda: Configuration({}))


class RequestKind(_Model):
    kind: Literal["Request"] = "Request"
    spec: RequestSpec


class StoryKind(_Model):
    kind: Literal["Story"] = "Story"
    spec: Stories


class NoKind(_Model):
    kind: Literal["None"] = "None"
    spec: None = None


ManifestKind = Annotated[
    ApiKind | ConfigurationKind | RequestKind | StoryKind | NoKind,
    Field(discriminator="kind"),
]


class Manifest(_Model):
    api_version: Literal["apix.io/v1"] = Field(API_VERSION, alias="apiVersion")
    metadata: Metadata
    kind: ManifestKind = Field(default_factory=NoKind)

    @model_validator(mode="before")
    @classmethod
    def _nest_kind(cls, data: Any) -> Any:
        # On disk `kind` is a bare tag next to its `spec`; nest them for the union.
        if isinstance(data, dict) and not isinstance(data.get("kind"), dict | BaseModel):
            data = dict(data)
            tag = data.pop("kind", None) or "None"
            payload = data.pop("spec", None)
            data["kind"] = {"kind": tag} if payload is None else {"kind": tag, "spec": payload}
        return data

    @classmethod
    def new_configuration(cls, values: dict[str, str]) -> "Manifest":
        return cls(
            metadata=Metadata(name="configuration", labels={"app": "apix"}),
            kind=ConfigurationKind(spec=Configuration(dict(values))),
        )

    @property
    def name(self) -> str:
        return self.metadata.name

    def get_annotation(self, key: str) -> str | None:
        return self.metadata.annotations.get(key)

    def get_label(self, key: str) -> str | None:
        return self.metadata.labels.get(key)

    def request_spec(self) -> RequestSpec:
        """Return the Request payload or fail if this manifest is another kind."""
        if not isinstance(self.kind, RequestKind):
            raise ManifestError(
                f"Manifest '{self.name}' is of kind {self.kind.kind}, expected Request"
            )
        return self.kind.spec

    def to_dict(self) -> dict[str, Any]:
        """Return the on-disk shape (``kind`` tag plus ``spec`` payload)."""
        data: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind.kind,
            "metadata": self.metadata.to_dict(),
        }
        if self.kind.spec is not None:
            data["spec"] = self.kind.spec.model_dump(mode="json", by_alias=True, exclude_none=True)
        return data
