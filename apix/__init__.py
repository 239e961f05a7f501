"""apix - declarative HTTP requests from YAML manifests."""

__version__ = "0.1.0"
