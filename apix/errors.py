"""apix errors - one exception type per failure domain."""


class ApixError(Exception):
    """Base class for every error apix reports to the user."""


class TemplateError(ApixError):
    """A template in a manifest field could not be compiled or rendered."""

    def __init__(self, name: str, cause: Exception | str):
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to render template '{name}': {cause}")


class ParameterError(ApixError):
    """A manifest parameter could not be resolved."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(f"Parameter '{name}': {message}")


class ManifestError(ApixError):
    """A manifest has the wrong kind for the requested operation."""


class IoError(ApixError):
    """A file could not be opened, read or written."""

    def __init__(self, path, message: str):
        self.path = str(path)
        super().__init__(f"{message} '{self.path}'")


class HttpError(ApixError):
    """The HTTP exchange failed (connection, TLS, proxy or protocol)."""


class SerializationError(ApixError):
    """JSON or YAML could not be encoded or decoded."""
