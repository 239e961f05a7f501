"""Shared fixtures for apix tests."""

import io
import json

import click
import pytest
import requests
import yaml
from click.testing import CliRunner
from requests.structures import CaseInsensitiveDict

from apix import core
from apix.executor import RequestResult
from apix.manifests import Manifest


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def global_apix_dir(tmp_path, monkeypatch):
    """Override the global ~/.apix directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".apix"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yml")
    return fake_global


@pytest.fixture
def progress_calls():
    """Progress factory that records instead of drawing bars."""
    return RecordingProgress()


class RecordingProgress:
    def __init__(self):
        self.started = []
        self.advanced = []
        self.finished = []

    def __call__(self, direction, path, total=None):
        self.started.append((direction, str(path), total))
        return _RecordingBar(self, direction)


class _RecordingBar:
    def __init__(self, owner, direction):
        self._owner = owner
        self._direction = direction

    def __enter__(self):
        return self

    def advance(self, size):
        self._owner.advanced.append((self._direction, size))

    def __exit__(self, exc_type, exc, tb):
        self._owner.finished.append((self._direction, exc_type is None))


class FakePrompter:
    """Prompter answering from a list; the convert callback runs like click's."""

    def __init__(self, answers=None, passwords=None):
        self.answers = list(answers or [])
        self.passwords = list(passwords or [])
        self.asked = []
        self.defaults = []
        self.rejected = []

    def ask_text(self, name, label, default=None, convert=None):
        self.asked.append(label)
        self.defaults.append(default)
        while self.answers:
            text = self.answers.pop(0)
            try:
                return convert(text) if convert else text
            except click.BadParameter as e:
                self.rejected.append(e.message)
        raise AssertionError(f"no valid answer left for {name}")

    def ask_password(self, name, label):
        self.asked.append(label)
        return self.passwords.pop(0)


def make_response(
    status_code=200,
    body=b"",
    headers=None,
    reason="OK",
    url="https://api.example.com/",
):
    """Build a requests.Response with an in-memory body."""
    if isinstance(body, dict | list):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.headers = CaseInsensitiveDict(headers or {})
    response.raw = io.BytesIO(body)
    response.url = url
    response.encoding = "utf-8"
    return response


def make_request_result(status_code=200, text="", headers=None, language="json"):
    """Factory for RequestResult objects returned by a mocked executor."""
    r = RequestResult()
    r.status_code = status_code
    r.headers = headers or {}
    r.language = language
    r.text = text
    r.elapsed_ms = 42.0
    return r


def make_manifest(request, parameters=None, annotations=None, context=None, name="test"):
    """Build a Request manifest from plain dicts, as it would be read from YAML."""
    spec = {"request": request}
    if parameters is not None:
        spec["parameters"] = parameters
    if context is not None:
        spec["context"] = context
    metadata = {"name": name}
    if annotations is not None:
        metadata["annotations"] = annotations
    return Manifest.model_validate(
        {"apiVersion": "apix.io/v1", "kind": "Request", "metadata": metadata, "spec": spec}
    )


def write_manifest(path, request, parameters=None, annotations=None, name="test"):
    manifest = make_manifest(request, parameters, annotations, name=name)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(manifest.to_dict(), sort_keys=False))
    return path
