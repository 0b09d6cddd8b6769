"""Tests for the restricted provider execution context."""

import datetime
import json
import urllib.parse

import httpx
import pytest
from pytest_httpx import HTTPXMock

from tunedock.infrastructure.providers.sandbox import (
    CryptoFacade,
    DatesFacade,
    HtmlFacade,
    HttpFacade,
    ProviderEnv,
    build_capability_table,
    build_namespace,
    make_import,
    make_require,
)


@pytest.fixture
def table() -> dict:
    return build_capability_table()


def run(source: str, table: dict) -> dict:
    """Exec a snippet the way the loader does and return its namespace."""
    namespace = build_namespace(ProviderEnv("1.0.0", "test"), table, "test_provider")
    exec(compile(source, "<provider:test>", "exec"), namespace)
    return namespace


class TestRestrictedImports:
    """Test that only capability-table modules are importable."""

    def test_allowed_module_import(self, table: dict) -> None:
        namespace = run("import json\nvalue = json.dumps([1])", table)
        assert namespace["value"] == "[1]"

    def test_disallowed_module_import(self, table: dict) -> None:
        with pytest.raises(ImportError, match="os"):
            run("import os", table)

    def test_from_import_of_dotted_module(self, table: dict) -> None:
        namespace = run("from urllib.parse import quote\nvalue = quote('a b')", table)
        assert namespace["value"] == "a%20b"

    def test_dotted_import_binds_only_allowed_children(self, table: dict) -> None:
        namespace = run("import urllib.parse\nparse = urllib.parse", table)
        assert namespace["parse"] is urllib.parse
        assert not hasattr(namespace["urllib"], "request")

    def test_from_package_import_child(self, table: dict) -> None:
        namespace = run("from urllib import parse", table)
        assert namespace["parse"] is urllib.parse

    def test_relative_import_rejected(self, table: dict) -> None:
        restricted = make_import(table)
        with pytest.raises(ImportError):
            restricted("sibling", None, None, (), 1)

    def test_require_uses_the_same_table(self, table: dict) -> None:
        require = make_require(table)
        assert require("json") is json
        assert isinstance(require("crypto"), CryptoFacade)
        with pytest.raises(ImportError):
            require("subprocess")

    def test_dangerous_builtins_are_missing(self, table: dict) -> None:
        for snippet in ("open('x')", "eval('1')", "exec('1')", "compile('1', 'x', 'exec')"):
            with pytest.raises(NameError):
                run(snippet, table)

    def test_classes_can_be_defined(self, table: dict) -> None:
        namespace = run(
            "class P:\n    platform = 'p'\n    def search(self, q, page, t):\n        return q\n"
            "provider = P()",
            table,
        )
        assert namespace["provider"].search("x", 1, "music") == "x"


class TestFacades:
    """Test the host-provided helper modules."""

    def test_crypto_hashes(self) -> None:
        crypto = CryptoFacade()
        assert crypto.md5("abc") == "900150983cd24fb0d6963f7d28e17f72"
        assert crypto.sha256("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )
        assert crypto.b64decode(crypto.b64encode("héllo")) == "héllo"

    def test_html_text_and_select(self) -> None:
        html = HtmlFacade()
        assert html.text("<p>Hello <b>world</b></p>") == "Hello world"
        assert [li.get_text() for li in html.select("<ul><li>a</li><li>b</li></ul>", "li")] == [
            "a",
            "b",
        ]

    def test_dates_accept_millisecond_timestamps(self) -> None:
        dates = DatesFacade()
        assert dates.from_timestamp(1_700_000_000_000) == dates.from_timestamp(1_700_000_000)
        assert dates.format(0) == "1970-01-01"

    def test_dates_parse_is_timezone_aware(self) -> None:
        parsed = DatesFacade().parse("2024-05-01T12:00:00")
        assert parsed.tzinfo == datetime.UTC

    async def test_http_get_returns_plain_response(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url="https://api.example.com/songs?q=x", json={"ok": True})

        async with httpx.AsyncClient() as client:

            async def factory() -> httpx.AsyncClient:
                return client

            response = await HttpFacade(factory).get(
                "https://api.example.com/songs", params={"q": "x"}
            )

        assert response.ok
        assert response.status == 200
        assert response.json() == {"ok": True}


class TestProviderEnv:
    """Test the `env` object injected into providers."""

    def test_unbound_env_has_no_variables(self) -> None:
        env = ProviderEnv("1.0.0", "path.py")
        assert env.get_user_variables() == {}
        assert env.logger.name == "tunedock.provider.unbound"

    def test_bound_env_reads_live_values(self) -> None:
        values = {"token": "a"}
        env = ProviderEnv("1.0.0", "path.py")
        env.bind("demo", lambda: values)

        values["token"] = "b"

        assert env.get_user_variables() == {"token": "b"}
        assert env.platform == "demo"
        assert env.logger.name == "tunedock.provider.demo"

    def test_returned_variables_are_a_copy(self) -> None:
        values = {"token": "a"}
        env = ProviderEnv("1.0.0", "path.py")
        env.bind("demo", lambda: values)

        env.get_user_variables()["token"] = "changed"

        assert values["token"] == "a"
