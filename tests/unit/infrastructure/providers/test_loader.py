"""Tests for ProviderLoader.

Hey future me - the loader must NEVER raise for a bad provider. Every broken
source comes back as an ERROR outcome with a stub unit whose `search` answers
"nothing, and that's the end".
"""

import logging

import pytest

from tunedock.domain.dtos import MediaType
from tunedock.domain.exceptions import LoadErrorReason
from tunedock.domain.ports.provider import CacheControl, LoadState, ProviderCapability
from tunedock.infrastructure.providers.builtin import SampleProvider
from tunedock.infrastructure.providers.loader import ProviderLoader, compute_source_hash

MODULE_PROVIDER = '''
platform = "demo"
version = "1.2.0"
author = "someone"
src_url = "https://example.com/demo.py"
cache_control = "cache"
supported_search_type = ["music", "bogus"]
user_variables = [{"key": "token", "name": "Token", "hint": "API token"}, {"name": "no key"}]
hints = {"import_music_sheet": ["Paste a share link"]}

def search(query, page, media_type):
    return {"is_end": True, "data": [{"id": "1", "title": query}]}

lyric_text = "not callable"
get_lyric = lyric_text
'''

CLASS_PROVIDER = '''
import json

class Demo:
    platform = "cls"
    version = "0.1.0"

    async def get_lyric(self, item):
        return {"raw_text": json.dumps(item["id"])}

provider = Demo()
'''

ENV_PROVIDER = '''
platform = "envy"

def get_lyric(item):
    return {"raw_text": env.get_user_variables().get("token", "none")}
'''


@pytest.fixture
def loader() -> ProviderLoader:
    return ProviderLoader(app_version="1.0.0")


class TestSuccessfulLoad:
    """Test mounting valid providers."""

    def test_module_style_provider(self, loader: ProviderLoader) -> None:
        outcome = loader.load_source(MODULE_PROVIDER, "demo.py")

        assert outcome.state == LoadState.MOUNTED
        assert outcome.mounted
        assert outcome.hash == compute_source_hash(MODULE_PROVIDER)
        unit = outcome.unit
        assert unit.platform == "demo"
        assert unit.version == "1.2.0"
        assert unit.identity.author == "someone"
        assert unit.identity.src_url == "https://example.com/demo.py"
        # get_lyric is a string, not a method
        assert unit.capabilities == frozenset({ProviderCapability.SEARCH})
        assert unit.cache_control == CacheControl.CACHE
        assert unit.supported_search_type == frozenset({MediaType.MUSIC})
        assert unit.hints == {"import_music_sheet": ["Paste a share link"]}

    def test_keyless_user_variables_are_dropped(self, loader: ProviderLoader) -> None:
        unit = loader.load_source(MODULE_PROVIDER, "demo.py").unit

        assert [v.key for v in unit.user_variable_definitions] == ["token"]
        assert unit.user_variable_definitions[0].hint == "API token"

    def test_defaults_for_undeclared_fields(self, loader: ProviderLoader) -> None:
        unit = loader.load_source('platform = "bare"', "bare.py").unit

        assert unit.version == "0.0.0"
        assert unit.primary_key == ["id"]
        assert unit.cache_control == CacheControl.NO_CACHE
        assert unit.supported_search_type is None
        assert unit.supports_search_type(MediaType.SHEET)
        assert unit.capabilities == frozenset()

    async def test_class_instance_provider(self, loader: ProviderLoader) -> None:
        outcome = loader.load_source(CLASS_PROVIDER, "cls.py")

        assert outcome.mounted
        assert outcome.unit.has(ProviderCapability.GET_LYRIC)
        result = await outcome.unit.call(ProviderCapability.GET_LYRIC, {"id": "x"})
        assert result == {"raw_text": '"x"'}

    def test_exported_class_is_instantiated(self, loader: ProviderLoader) -> None:
        source = CLASS_PROVIDER.replace("provider = Demo()", "provider = Demo")
        outcome = loader.load_source(source, "cls.py")

        assert outcome.mounted
        assert outcome.unit.has(ProviderCapability.GET_LYRIC)

    async def test_env_reads_bound_variables(self, loader: ProviderLoader) -> None:
        outcome = loader.load_source(ENV_PROVIDER, "env.py")
        assert outcome.env is not None

        before = await outcome.unit.call(ProviderCapability.GET_LYRIC, {})
        outcome.env.bind("envy", lambda: {"token": "abc"})
        after = await outcome.unit.call(ProviderCapability.GET_LYRIC, {})

        assert before == {"raw_text": "none"}
        assert after == {"raw_text": "abc"}

    def test_compatible_app_version(self, loader: ProviderLoader) -> None:
        outcome = loader.load_source('platform = "p"\napp_version = ">=1.0.0"', "p.py")
        assert outcome.mounted

    def test_builtin_object(self, loader: ProviderLoader) -> None:
        first = loader.load_object(SampleProvider())
        second = loader.load_object(SampleProvider())

        assert first.mounted
        assert first.unit.capabilities == frozenset(ProviderCapability)
        assert first.hash == second.hash


class TestFailedLoad:
    """Test that broken sources yield ERROR outcomes with a usable stub."""

    @pytest.mark.parametrize(
        "source",
        [
            "def search(query, page, media_type):\n    return {}",
            'platform = ""',
            "platform = 42",
            "this is not python",
            "import os\nplatform = 'p'",
            "raise RuntimeError('boom')",
            "provider = None\nplatform = None",
        ],
    )
    def test_cannot_parse(self, loader: ProviderLoader, source: str) -> None:
        outcome = loader.load_source(source, "broken.py")

        assert outcome.state == LoadState.ERROR
        assert outcome.error_reason == LoadErrorReason.CANNOT_PARSE
        assert outcome.error_message

    async def test_stub_unit_is_a_noop(self, loader: ProviderLoader) -> None:
        unit = loader.load_source("syntax error here", "broken.py").unit

        assert await unit.call(ProviderCapability.SEARCH, "q", 1, "music") == {
            "is_end": True,
            "data": [],
        }
        assert await unit.call(ProviderCapability.GET_ALBUM_INFO, {}, 1) is None
        assert await unit.call(ProviderCapability.GET_MEDIA_SOURCE, {}, "128k") is None
        assert not unit.has(ProviderCapability.GET_LYRIC)

    def test_disallowed_import_names_the_module(self, loader: ProviderLoader) -> None:
        outcome = loader.load_source("import subprocess\nplatform = 'p'", "p.py")
        assert "subprocess" in (outcome.error_message or "")

    def test_version_incompatible_keeps_identity(self, loader: ProviderLoader) -> None:
        source = 'platform = "future"\nversion = "5.0.0"\napp_version = "^2.0.0"'
        outcome = loader.load_source(source, "future.py")

        assert outcome.state == LoadState.ERROR
        assert outcome.error_reason == LoadErrorReason.VERSION_INCOMPATIBLE
        assert outcome.platform == "future"
        assert outcome.unit.version == "5.0.0"

    def test_failure_is_logged_with_source(
        self, loader: ProviderLoader, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR):
            loader.load_source("import os", "bad-provider.py")

        assert "Provider Load Failed" in caplog.text
        assert "bad-provider.py" in caplog.text
        assert "cannot-parse" in caplog.text
