"""
CLI Tests
=========

Commands run through Typer's CliRunner against temporary documents.
Only commands that print nothing on stderr are parsed from stdout.
"""

import json

import pytest
import yaml
from typer.testing import CliRunner

from cli.main import app, parse_value

runner = CliRunner()


def invoke(*args):
    return runner.invoke(app, [str(a) for a in args])


class TestParseValue:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("42", 42),
            ("true", True),
            ("null", None),
            ('{"a": [1]}', {"a": [1]}),
            ("hello", "hello"),
        ],
    )
    def test_json_literals_with_string_fallback(self, text, expected):
        assert parse_value(text) == expected

    def test_raw(self):
        assert parse_value("42", raw=True) == "42"


class TestGet:
    def test_nested_value(self, json_file):
        result = invoke("get", json_file, "server.port")
        assert result.exit_code == 0
        assert result.stdout == "8080\n"

    def test_list_element_from_yaml(self, yaml_file):
        result = invoke("get", yaml_file, "tags.1")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == "b"

    def test_missing_path(self, json_file):
        assert invoke("get", json_file, "server.nope").exit_code == 1

    def test_missing_path_with_default(self, json_file):
        result = invoke("get", "--default", "[1, 2]", json_file, "server.nope")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == [1, 2]

    def test_missing_file(self, tmp_path):
        assert invoke("get", tmp_path / "nope.json", "a").exit_code == 1


class TestSingleEdits:
    def test_assoc(self, json_file, sample_document):
        result = invoke("assoc", json_file, "env=prod", "replicas=3")
        assert result.exit_code == 0
        doc = json.loads(result.stdout)
        assert doc["env"] == "prod"
        assert doc["replicas"] == 3
        # source untouched without --in-place
        assert json.loads(json_file.read_text(encoding="utf-8")) == sample_document

    def test_assoc_raw(self, json_file):
        result = invoke("assoc", "--raw", json_file, "replicas=3")
        assert json.loads(result.stdout)["replicas"] == "3"

    def test_assoc_bad_pair(self, json_file):
        assert invoke("assoc", json_file, "novalue").exit_code == 2

    def test_assoc_rejects_nested_key(self, json_file):
        result = invoke("assoc", json_file, "server.port=1")
        assert result.exit_code == 2
        assert "assoc-in" in result.output

    def test_assoc_escaped_separator_is_one_key(self, json_file):
        result = invoke("assoc", json_file, r"example\.com=1")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["example.com"] == 1

    def test_dissoc(self, json_file):
        result = invoke("dissoc", json_file, "name", "tags", "absent")
        assert result.exit_code == 0
        assert set(json.loads(result.stdout)) == {"server", "counters"}

    def test_assoc_in(self, json_file):
        result = invoke("assoc-in", json_file, "server.tls.enabled", "true")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["server"]["tls"] == {"enabled": True}

    def test_assoc_in_through_scalar_fails(self, json_file):
        assert invoke("assoc-in", json_file, "name.first", "1").exit_code == 1

    def test_update_in(self, json_file):
        result = invoke("update-in", json_file, "counters.visits", "inc", "5")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["counters"]["visits"] == 8

    def test_update_in_append(self, json_file):
        result = invoke("update-in", json_file, "tags", "append", "c")
        assert json.loads(result.stdout)["tags"] == ["a", "b", "c"]

    def test_update_in_unknown_function(self, json_file):
        assert invoke("update-in", json_file, "counters.visits", "explode").exit_code == 1

    def test_dissoc_in(self, json_file):
        result = invoke("dissoc-in", json_file, "tags.0")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["tags"] == ["b"]

    def test_merge(self, json_file, tmp_path):
        other = tmp_path / "other.yaml"
        other.write_text("name: web\nowner: ops\n", encoding="utf-8")
        result = invoke("merge", json_file, other)
        assert result.exit_code == 0
        doc = json.loads(result.stdout)
        assert doc["name"] == "web"
        assert doc["owner"] == "ops"

    def test_merge_rejects_non_mapping(self, json_file, tmp_path):
        other = tmp_path / "list.json"
        other.write_text("[1, 2]", encoding="utf-8")
        assert invoke("merge", json_file, other).exit_code == 1

    def test_yaml_output_follows_source(self, yaml_file):
        result = invoke("assoc-in", yaml_file, "server.port", "9090")
        assert result.exit_code == 0
        assert yaml.safe_load(result.stdout)["server"]["port"] == 9090

    def test_format_override(self, json_file):
        result = invoke("assoc", "--format", "yaml", json_file, "env=prod")
        assert result.exit_code == 0
        assert yaml.safe_load(result.stdout)["env"] == "prod"


class TestOutputTargets:
    def test_in_place(self, json_file):
        result = invoke("assoc-in", "--in-place", json_file, "server.port", "9090")
        assert result.exit_code == 0
        assert json.loads(json_file.read_text(encoding="utf-8"))["server"]["port"] == 9090

    def test_output_file(self, json_file, tmp_path):
        target = tmp_path / "out" / "result.yaml"
        result = invoke("dissoc", "-o", target, json_file, "tags")
        assert result.exit_code == 0
        assert "tags" not in yaml.safe_load(target.read_text(encoding="utf-8"))

    def test_in_place_and_output_conflict(self, json_file, tmp_path):
        result = invoke("dissoc", "-i", "-o", tmp_path / "x.json", json_file, "tags")
        assert result.exit_code == 2


class TestApply:
    def _script(self, tmp_path, edits):
        script = tmp_path / "edits.yaml"
        script.write_text(yaml.safe_dump({"edits": edits}), encoding="utf-8")
        return script

    def test_apply_script(self, json_file, tmp_path):
        script = self._script(
            tmp_path,
            [
                {"op": "assoc_in", "path": "server.port", "value": 9090},
                {"op": "update_in", "path": "counters.visits", "fn": "inc"},
                {"op": "dissoc", "keys": ["name"]},
            ],
        )
        result = invoke("apply", json_file, script)
        assert result.exit_code == 0
        doc = json.loads(result.stdout)
        assert doc["server"]["port"] == 9090
        assert doc["counters"]["visits"] == 4
        assert "name" not in doc

    def test_strict_apply_fails(self, json_file, tmp_path):
        script = self._script(
            tmp_path,
            [
                {"op": "assoc_in", "path": "name.first", "value": 1},
                {"op": "dissoc", "keys": ["name"]},
            ],
        )
        assert invoke("apply", json_file, script).exit_code == 1

    def test_lenient_apply_skips(self, json_file, tmp_path):
        script = self._script(
            tmp_path,
            [
                {"op": "assoc_in", "path": "name.first", "value": 1},
                {"op": "dissoc", "keys": ["name"]},
            ],
        )
        target = tmp_path / "out.json"
        result = invoke("apply", "--lenient", "-o", target, json_file, script)
        assert result.exit_code == 0
        assert "name" not in json.loads(target.read_text(encoding="utf-8"))
        assert "skipped" in result.output

    def test_invalid_script(self, json_file, tmp_path):
        script = self._script(tmp_path, [{"op": "explode"}])
        assert invoke("apply", json_file, script).exit_code == 1


class TestMisc:
    def test_functions(self):
        result = invoke("functions")
        assert result.exit_code == 0
        assert "inc" in result.output
        assert "append" in result.output

    def test_doctor_run(self):
        result = invoke("doctor", "run")
        assert result.exit_code == 0
        assert "MAPKIT_INDENT" in result.output

    def test_doctor_set(self, tmp_path):
        result = invoke("doctor", "set", "indent=4", "MAPKIT_LOG_LEVEL=DEBUG")
        assert result.exit_code == 0
        env_file = tmp_path / "xdg" / "mapkit" / ".env"
        content = env_file.read_text(encoding="utf-8")
        assert "MAPKIT_INDENT=4" in content
        assert "MAPKIT_LOG_LEVEL=DEBUG" in content

    @pytest.mark.parametrize("pair", ["indent=99", "unknown=1", "indent"])
    def test_doctor_set_rejects(self, pair):
        assert invoke("doctor", "set", pair).exit_code == 2
