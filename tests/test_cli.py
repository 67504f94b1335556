"""
Tests for the osiam-cli entry point.
"""
import argparse
import json

import httpx
import pytest

import osiam_cli
from osiam_client import InvalidAttributeError, OsiamUserService


def search_args(**overrides):
    args = {
        "where": None,
        "any": False,
        "query": None,
        "sort": None,
        "count": None,
        "start_index": None,
    }
    args.update(overrides)
    return argparse.Namespace(**args)


class TestBuildQuery:

    def test_where_clauses_are_joined_with_and(self):
        args = search_args(where=[["userName", "eq", "bjensen"], ["emails.value", "pr"]], count=20)
        assert str(osiam_cli.build_query(args)) == 'userName eq "bjensen" and emails.value pr &count=20'

    def test_any_joins_with_or(self):
        args = search_args(where=[["userName", "sw", "b"], ["displayName", "co", "Babs", "Jensen"]], any=True)
        assert str(osiam_cli.build_query(args)) == 'userName sw "b" or displayName co "Babs Jensen"'

    def test_raw_query(self):
        args = search_args(query='title pr &sortOrder=descending')
        assert str(osiam_cli.build_query(args)) == "title pr &sortOrder=descending"

    def test_unknown_operator(self):
        with pytest.raises(InvalidAttributeError):
            osiam_cli.build_query(search_args(where=[["userName", "ne", "x"]]))

    def test_unknown_attribute(self):
        with pytest.raises(InvalidAttributeError):
            osiam_cli.build_query(search_args(where=[["shoeSize", "eq", "42"]]))


class TestMain:

    @pytest.fixture
    def config_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("OSIAM_ENDPOINT", raising=False)
        monkeypatch.delenv("OSIAM_TOKEN", raising=False)
        path = tmp_path / "osiam-config.json"
        path.write_text(json.dumps({"endpoint": "http://localhost:8080/osiam", "token": "abc"}), encoding="utf-8")
        return path

    @pytest.fixture
    def mock_server(self, monkeypatch):
        requests = []

        def handler(request):
            requests.append(request)
            if request.method == "DELETE":
                return httpx.Response(404, json={"status": "404", "detail": "Resource not found"})
            return httpx.Response(200, json={"id": "abc", "userName": "bjensen"})

        original = OsiamUserService.from_config.__func__

        def from_config(cls, config, transport=None):
            return original(cls, config, transport=httpx.MockTransport(handler))

        monkeypatch.setattr(OsiamUserService, "from_config", classmethod(from_config))
        return requests

    def test_no_command(self, capsys):
        assert osiam_cli.main([]) == 0
        assert "osiam-cli" in capsys.readouterr().out

    def test_get_user(self, config_file, mock_server, capsys):
        assert osiam_cli.main(["-c", str(config_file), "user", "get", "abc", "--attributes", "userName"]) == 0

        assert json.loads(capsys.readouterr().out)["userName"] == "bjensen"
        assert mock_server[0].headers["Authorization"] == "Bearer abc"
        assert mock_server[0].url.params["attributes"] == "userName"

    def test_error_exit_code(self, config_file, mock_server, capsys):
        assert osiam_cli.main(["-c", str(config_file), "user", "delete", "abc"]) == 1
        assert "Resource not found" in capsys.readouterr().out

    def test_missing_token(self, tmp_path, monkeypatch, capsys):
        monkeypatch.delenv("OSIAM_TOKEN", raising=False)
        monkeypatch.setenv("OSIAM_ENDPOINT", "http://localhost:8080/osiam")

        assert osiam_cli.main(["-c", str(tmp_path / "missing.json"), "user", "get", "abc"]) == 1
