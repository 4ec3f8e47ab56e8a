"""Tests for CLI output helpers."""

import json

import yaml

from shardbase.cli._output import print_error, print_json, print_table, render


def test_print_table_text_renders_containers_as_json(capsys):
    print_table(["id", "tags", "verified", "nickname"], [["p1", ["a", "b"], True, None]])
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["id", "tags", "verified", "nickname"]
    assert '["a", "b"]' in lines[2]
    assert "true" in lines[2]
    assert "None" not in lines[2]


def test_print_table_empty(capsys):
    print_table(["id"], [])
    assert capsys.readouterr().out == ""


def test_print_json(capsys):
    print_json({"records": 5, "tags": ["a"]})
    assert json.loads(capsys.readouterr().out) == {"records": 5, "tags": ["a"]}


def test_render_json_and_yaml():
    report = {"database": {"records": 5}, "indexes": [{"field": "age"}]}
    assert json.loads(render(report, "json")) == report
    assert yaml.safe_load(render(report, "yaml")) == report


def test_print_error(capsys):
    print_error("database not found")
    assert "Error: database not found" in capsys.readouterr().err
