import pytest

from iptv_proxy.core.errors import MalformedUpstreamURL
from iptv_proxy.services.urls import base, escape_path, parse_url, path_escape, user_info


@pytest.mark.parametrize("raw", [
    "::not a url",
    ":foo",
    "1http://host/a.ts",
    "http://host/a%zz.ts",
    "http://host:port/a.ts",
    "http://host/a\n.ts",
    "http://bad host/a.ts",
])
def test_parse_url_rejects_malformed(raw):
    with pytest.raises(MalformedUpstreamURL):
        parse_url(raw)


@pytest.mark.parametrize("raw", [
    "http://up.example/x.ts?id=7",
    "https://u:p@up.example:8443/path/to/file.m3u8",
    "rtmp://up.example/live",
    "/relative/path.ts",
    "file.ts",
    "http://up.example/a.ts?t=50%off",
])
def test_parse_url_accepts_urls(raw):
    assert parse_url(raw).geturl() == raw


def test_base():
    assert base("/a/b/c.ts") == "c.ts"
    assert base("/a/b/") == "b"
    assert base("") == "."
    assert base("/") == "/"
    assert base("c.ts") == "c.ts"


def test_path_escape():
    assert path_escape("user") == "user"
    assert path_escape("a b/c?d") == "a%20b%2Fc%3Fd"
    assert path_escape("me@x:y") == "me@x:y"


def test_user_info():
    assert user_info(parse_url("http://u:p@host/a")) == "u:p"
    assert user_info(parse_url("http://host/a")) == ""


def test_bare_percent_in_query_is_kept():
    assert parse_url("http://up.example/a.ts?t=50%off").query == "t=50%off"
    with pytest.raises(MalformedUpstreamURL):
        parse_url("http://up.example/50%off.ts?t=1")


def test_escape_path():
    assert escape_path("/a/my channel.ts") == "/a/my%20channel.ts"
    assert escape_path("/a/b%20c/:id") == "/a/b%20c/:id"
