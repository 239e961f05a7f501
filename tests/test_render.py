"""Tests for rendering Request manifests into concrete requests."""

from unittest.mock import patch

import pytest

from apix.body import FileBody, JsonBody
from apix.errors import ManifestError, ParameterError, TemplateError
from apix.executor import RequestOptions
from apix.manifests import Manifest
from apix.render import (
    BODY_FILE,
    CONVERT_BODY_STRING_TO_JSON,
    OUTPUT_FILE,
    PROXY_LOGIN,
    PROXY_URL,
    effective_options,
    handle_execute,
    render_request,
)
from tests.conftest import FakePrompter, make_manifest, make_request_result

URL = "https://api.example.com/users"


def _render(manifest, cli_params=None, options=None, env=None, prompter=None):
    return render_request(
        "get-user.yaml",
        manifest,
        cli_params or {},
        options,
        env or {},
        prompter=prompter or FakePrompter(),
    )


# ── Fields ───────────────────────────────────────────────────────────────


class TestRenderFields:
    def test_url_method_headers_queries(self):
        m = make_manifest(
            {
                "method": "{{ 'post' | upper }}",
                "url": URL + "/{{parameters.id}}",
                "headers": {"Authorization": "Bearer {{env.TOKEN}}"},
                "queries": {"expand": "{{parameters.id}}", "page": "1"},
            },
            parameters=[{"name": "id", "required": True}],
        )
        params = _render(m, {"id": "42"}, env={"TOKEN": "t0k"})
        assert params.url == URL + "/42"
        assert params.method == "POST"
        assert params.headers == {"Authorization": "Bearer t0k"}
        assert list(params.queries.items()) == [("expand", "42"), ("page", "1")]

    def test_manifest_in_context(self):
        m = make_manifest({"url": URL, "headers": {"X-Name": "{{manifest.metadata.name}}"}}, name="who")
        assert _render(m).headers == {"X-Name": "who"}

    def test_local_context_sees_parameters(self):
        m = make_manifest(
            {"url": "{{context.base}}/items"},
            parameters=[{"name": "host"}],
            context={"base": "https://{{parameters.host}}"},
        )
        assert _render(m, {"host": "h.example"}).url == "https://h.example/items"

    def test_template_error_names_field(self):
        m = make_manifest({"url": URL, "headers": {"X-Id": "{{parameters.missing}}"}})
        with pytest.raises(TemplateError) as exc:
            _render(m)
        assert exc.value.name == "get-user.yaml#/headers.X-Id"

    def test_other_kind_rejected(self):
        m = Manifest.model_validate(
            {"apiVersion": "apix.io/v1", "kind": "Api", "metadata": {"name": "api"}, "spec": {}}
        )
        with pytest.raises(ManifestError):
            _render(m)

    def test_missing_required_without_terminal(self):
        from apix.parameters import Prompter

        m = make_manifest({"url": URL}, parameters=[{"name": "id", "required": True}])
        with pytest.raises(ParameterError):
            _render(m, prompter=Prompter(interactive=False))

    def test_prompted_value_used(self):
        m = make_manifest(
            {"url": URL + "/{{parameters.id}}"},
            parameters=[{"name": "id", "required": True, "schema": {"type": "integer"}}],
        )
        assert _render(m, prompter=FakePrompter(answers=["7"])).url == URL + "/7"


# ── Body ─────────────────────────────────────────────────────────────────


class TestRenderBody:
    def test_structured_body(self):
        m = make_manifest(
            {"method": "POST", "url": URL, "body": {"name": "{{parameters.name}}", "age": 3}},
            parameters=[{"name": "name"}],
        )
        assert _render(m, {"name": "bob"}).body == JsonBody({"name": "bob", "age": 3})

    def test_string_body_converted_to_json(self):
        m = make_manifest(
            {"method": "POST", "url": URL, "body": '{"id": {{parameters.id}}}'},
            parameters=[{"name": "id"}],
            annotations={CONVERT_BODY_STRING_TO_JSON: "true"},
        )
        assert _render(m, {"id": "42"}).body == JsonBody({"id": 42})

    @pytest.mark.parametrize("flag", ["True", " true ", "TRUE", "yes", "1"])
    def test_convert_flag_must_be_exactly_true(self, flag):
        m = make_manifest(
            {"method": "POST", "url": URL, "body": '{"id": 1}'},
            annotations={CONVERT_BODY_STRING_TO_JSON: flag},
        )
        assert _render(m).body == JsonBody('{"id": 1}')

    def test_convert_falls_back_to_json_string(self):
        m = make_manifest(
            {"method": "POST", "url": URL, "body": "not json"},
            annotations={CONVERT_BODY_STRING_TO_JSON: "true"},
        )
        assert _render(m).body == JsonBody("not json")

    def test_rendered_text_not_json_falls_back(self):
        m = make_manifest(
            {"method": "POST", "url": URL, "body": "{{env.X}}"},
            annotations={CONVERT_BODY_STRING_TO_JSON: "true"},
        )
        assert _render(m, env={"X": "not json"}).body == JsonBody("not json")

    def test_string_body_without_flag_is_json_string(self):
        m = make_manifest({"method": "POST", "url": URL, "body": '{"id": 1}'})
        assert _render(m).body == JsonBody('{"id": 1}')

    def test_body_file_annotation(self):
        m = make_manifest(
            {"method": "PUT", "url": URL},
            parameters=[{"name": "name"}],
            annotations={BODY_FILE: "uploads/{{parameters.name}}.bin"},
        )
        assert _render(m, {"name": "a"}).body == FileBody("uploads/a.bin")

    def test_inline_body_beats_body_file(self):
        m = make_manifest(
            {"method": "PUT", "url": URL, "body": {"x": 1}},
            annotations={BODY_FILE: "data.bin"},
        )
        assert _render(m).body == JsonBody({"x": 1})

    def test_no_body(self):
        assert _render(make_manifest({"url": URL})).body is None


# ── Options ──────────────────────────────────────────────────────────────


class TestEffectiveOptions:
    def test_annotations_fill_unset_options(self):
        m = make_manifest(
            {"url": URL},
            parameters=[{"name": "id"}],
            annotations={OUTPUT_FILE: "user-{{parameters.id}}.json", PROXY_URL: "http://proxy:3128"},
        )
        options = _render(m, {"id": "42"}).options
        assert options.output_filename == "user-42.json"
        assert options.proxy_url == "http://proxy:3128"
        assert options.proxy_login is None

    def test_cli_values_win(self):
        options = effective_options(
            RequestOptions(output_filename="cli.json", proxy_login="me"),
            {OUTPUT_FILE: "annotation.json", PROXY_LOGIN: "other"},
        )
        assert options.output_filename == "cli.json"
        assert options.proxy_login == "me"

    def test_other_options_untouched(self):
        original = RequestOptions(verbose=True, theme="dracula", timeout=5)
        options = effective_options(original, {})
        assert options == original
        assert options is not original


# ── handle_execute ───────────────────────────────────────────────────────


class TestHandleExecute:
    @patch("apix.executor.execute_request")
    def test_end_to_end_arguments(self, mock_exec):
        mock_exec.return_value = make_request_result()
        m = make_manifest(
            {"method": "GET", "url": "https://api.example.com/users/{{parameters.id}}"},
            parameters=[{"name": "id", "required": True}],
        )
        handle_execute("get-user.yaml", m, {"id": "42"}, RequestOptions(), {}, FakePrompter())
        mock_exec.assert_called_once()
        _, kwargs = mock_exec.call_args
        assert kwargs["url"] == "https://api.example.com/users/42"
        assert kwargs["method"] == "GET"
        assert kwargs["headers"] is None
        assert kwargs["queries"] is None
        assert kwargs["body"] is None

    @patch("apix.executor.execute_request")
    def test_effective_options_passed(self, mock_exec):
        mock_exec.return_value = make_request_result()
        m = make_manifest({"url": URL}, annotations={OUTPUT_FILE: "out.json"})
        handle_execute("f.yaml", m, {}, RequestOptions(verbose=True), {}, FakePrompter())
        options = mock_exec.call_args.kwargs["options"]
        assert options.output_filename == "out.json"
        assert options.verbose is True

    @patch("apix.executor.execute_request")
    def test_render_failure_sends_nothing(self, mock_exec):
        m = make_manifest({"url": "{{oops}}"})
        with pytest.raises(TemplateError):
            handle_execute("f.yaml", m, {}, RequestOptions(), {}, FakePrompter())
        mock_exec.assert_not_called()
