"""
Restricted execution context for provider scripts.

Hey future me – providers are UNTRUSTED code we exec at runtime. This module
builds the namespace they run in:

1. `__builtins__` is a curated dict - no open/exec/eval/compile/input/globals.
2. `import x` goes through our own `__import__`, which ONLY resolves names in
   the host capability table. Everything else → ImportError (the loader then
   reports CannotParse). Same table backs `require("x")`.
3. `env` gives the provider its own user-variable VALUES, its platform and the
   host version. The registry binds it after the entry exists.

This is a capability boundary, NOT a security sandbox: a determined script can
still escape via object introspection. Isolation is an accepted open risk.

Capability table:
    crypto  - md5/sha1/sha256/hmac_sha256/b64encode/b64decode (hex/str in, str out)
    http    - async get/post via the shared httpx client → HttpResponse
    html    - BeautifulSoup parsing (load/select/text)
    dates   - now/timestamp/from_timestamp/format/parse
    json, re, math, base64, random, time, datetime, hashlib, string,
    itertools, functools, urllib.parse - plain stdlib modules
"""

import base64
import builtins
import datetime
import functools
import hashlib
import hmac
import itertools
import json
import logging
import math
import random
import re
import string
import time
import types
import urllib.parse
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
from bs4 import BeautifulSoup

from tunedock.infrastructure.integrations.http_pool import HttpClientPool

ClientFactory = Callable[[], Awaitable[httpx.AsyncClient]]

_SAFE_BUILTIN_NAMES = (
    # constants & types
    "None", "True", "False", "Ellipsis", "NotImplemented",
    "bool", "int", "float", "complex", "str", "bytes", "bytearray",
    "list", "tuple", "dict", "set", "frozenset", "object", "type", "slice",
    "range", "enumerate", "zip", "map", "filter", "reversed", "sorted",
    "len", "min", "max", "sum", "abs", "round", "pow", "divmod",
    "all", "any", "iter", "next", "repr", "format", "hash", "id",
    "chr", "ord", "hex", "oct", "bin", "ascii",
    "isinstance", "issubclass", "callable", "getattr", "setattr", "hasattr",
    "property", "staticmethod", "classmethod", "super", "print",
    "__build_class__",
    # exceptions providers may raise/catch
    "BaseException", "Exception", "ArithmeticError", "AssertionError",
    "AttributeError", "IndexError", "KeyError", "LookupError", "NameError",
    "NotImplementedError", "RuntimeError", "StopIteration",
    "StopAsyncIteration", "TypeError", "ValueError", "ZeroDivisionError",
    "UnicodeDecodeError", "UnicodeEncodeError", "ImportError", "TimeoutError",
)

SAFE_BUILTINS: dict[str, Any] = {
    name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES
}


class CryptoFacade:
    """Hashing/encoding helpers exposed to providers as `crypto`."""

    @staticmethod
    def _bytes(value: str | bytes) -> bytes:
        return value.encode("utf-8") if isinstance(value, str) else value

    def md5(self, value: str | bytes) -> str:
        return hashlib.md5(self._bytes(value)).hexdigest()

    def sha1(self, value: str | bytes) -> str:
        return hashlib.sha1(self._bytes(value)).hexdigest()

    def sha256(self, value: str | bytes) -> str:
        return hashlib.sha256(self._bytes(value)).hexdigest()

    def hmac_sha256(self, key: str | bytes, value: str | bytes) -> str:
        return hmac.new(self._bytes(key), self._bytes(value), hashlib.sha256).hexdigest()

    def b64encode(self, value: str | bytes) -> str:
        return base64.b64encode(self._bytes(value)).decode("ascii")

    def b64decode(self, value: str | bytes) -> str:
        return base64.b64decode(self._bytes(value)).decode("utf-8")


@dataclass
class HttpResponse:
    """Plain response handed to provider code."""

    status: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.text)


class HttpFacade:
    """Async HTTP exposed to providers as `http`, backed by the shared client."""

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self._client_factory = client_factory or HttpClientPool.get_client

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        data: Any = None,
        json_body: Any = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        client = await self._client_factory()
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if data is not None:
            kwargs["data"] = data
        if json_body is not None:
            kwargs["json"] = json_body
        if timeout is not None:
            kwargs["timeout"] = timeout
        response = await client.request(method.upper(), url, **kwargs)
        return HttpResponse(
            status=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            url=str(response.url),
        )

    async def get(self, url: str, **kwargs: Any) -> HttpResponse:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> HttpResponse:
        return await self.request("POST", url, **kwargs)


class HtmlFacade:
    """HTML parsing exposed to providers as `html`."""

    def load(self, markup: str) -> BeautifulSoup:
        return BeautifulSoup(markup, "html.parser")

    def select(self, markup: str, selector: str) -> list[Any]:
        return self.load(markup).select(selector)

    def text(self, markup: str) -> str:
        return self.load(markup).get_text(" ", strip=True)


class DatesFacade:
    """Date helpers exposed to providers as `dates`. All datetimes are UTC-aware."""

    def now(self) -> datetime.datetime:
        return datetime.datetime.now(datetime.UTC)

    def timestamp(self) -> float:
        return self.now().timestamp()

    def from_timestamp(self, value: float) -> datetime.datetime:
        # Millisecond timestamps are common in music APIs
        if value > 1e11:
            value = value / 1000
        return datetime.datetime.fromtimestamp(value, datetime.UTC)

    def format(self, value: datetime.datetime | float, fmt: str = "%Y-%m-%d") -> str:
        if not isinstance(value, datetime.datetime):
            value = self.from_timestamp(value)
        return value.strftime(fmt)

    def parse(self, value: str) -> datetime.datetime:
        parsed = datetime.datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.UTC)
        return parsed


class ProviderEnv:
    """
    Runtime environment object injected as `env`.

    Hey future me – at load time there's no registry entry yet, so variables
    come from a getter the registry binds later. Until then it's empty.
    """

    def __init__(self, app_version: str, source_path: str) -> None:
        self.app_version = app_version
        self.source_path = source_path
        self.platform: str = ""
        self._variables_getter: Callable[[], Mapping[str, str]] | None = None

    def bind(self, platform: str, getter: Callable[[], Mapping[str, str]]) -> None:
        self.platform = platform
        self._variables_getter = getter

    def get_user_variables(self) -> dict[str, str]:
        if self._variables_getter is None:
            return {}
        return dict(self._variables_getter())

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(f"tunedock.provider.{self.platform or 'unbound'}")


def build_capability_table(client_factory: ClientFactory | None = None) -> dict[str, Any]:
    """Fixed table of host-provided modules a provider may import."""
    return {
        "crypto": CryptoFacade(),
        "http": HttpFacade(client_factory),
        "html": HtmlFacade(),
        "dates": DatesFacade(),
        "json": json,
        "re": re,
        "math": math,
        "base64": base64,
        "random": random,
        "time": time,
        "datetime": datetime,
        "hashlib": hashlib,
        "string": string,
        "itertools": itertools,
        "functools": functools,
        "urllib.parse": urllib.parse,
    }


def _parent_namespace(name: str, table: Mapping[str, Any]) -> types.SimpleNamespace | None:
    """Expose only allowed children of a dotted package ("urllib" → parse)."""
    prefix = f"{name}."
    children = {
        key[len(prefix):]: value
        for key, value in table.items()
        if key.startswith(prefix) and "." not in key[len(prefix):]
    }
    if not children:
        return None
    return types.SimpleNamespace(**children)


def make_require(table: Mapping[str, Any]) -> Callable[[str], Any]:
    """`require(name)` for providers - table lookup only."""

    def require(name: str) -> Any:
        try:
            return table[name]
        except KeyError:
            raise ImportError(f"Module '{name}' is not available to providers") from None

    return require


def make_import(table: Mapping[str, Any]) -> Callable[..., Any]:
    """Restricted `__import__` that resolves only against the capability table."""

    def restricted_import(
        name: str,
        globals: Any = None,
        locals: Any = None,
        fromlist: Any = (),
        level: int = 0,
    ) -> Any:
        if level:
            raise ImportError("Relative imports are not available to providers")

        if fromlist:
            if name in table:
                return table[name]
            namespace = _parent_namespace(name, table)
            if namespace is not None:
                return namespace
            raise ImportError(f"Module '{name}' is not available to providers")

        # `import a.b` binds `a`; hand back a namespace with just the allowed child
        top = name.split(".", 1)[0]
        if name in table and "." not in name:
            return table[name]
        if name in table:
            namespace = _parent_namespace(top, table)
            if namespace is not None:
                return namespace
        raise ImportError(f"Module '{name}' is not available to providers")

    return restricted_import


def build_namespace(
    env: ProviderEnv,
    table: Mapping[str, Any],
    module_name: str,
) -> dict[str, Any]:
    """Fresh globals dict for exec'ing one provider script."""
    provider_builtins = dict(SAFE_BUILTINS)
    provider_builtins["__import__"] = make_import(table)
    return {
        "__builtins__": provider_builtins,
        "__name__": module_name,
        "require": make_require(table),
        "env": env,
    }
