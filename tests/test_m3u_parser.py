import pytest

from iptv_proxy.core.errors import PlaylistFetchError
from iptv_proxy.schemas import Playlist, Tag, Track
from iptv_proxy.services import m3u_parser
from iptv_proxy.services.m3u_parser import load_playlist, parse_extinf, parse_m3u, trim_tag_strings


def test_parse_sample(sample_m3u):
    playlist = parse_m3u(sample_m3u)

    assert len(playlist.tracks) == 3
    first = playlist.tracks[0]
    assert first.uri == "http://up.example/live/u1/p1/101.ts"
    assert first.name == "News HD"
    assert first.length == -1
    assert [(t.name, t.value) for t in first.tags] == [
        ("tvg-id", "news.fr"),
        ("tvg-name", "News"),
        ("group-title", "News, Local"),
    ]
    assert playlist.tracks[2].uri.endswith("index.m3u8")


def test_parse_extinf_unescapes_values():
    track = parse_extinf('#EXTINF:10 title="A \\"B\\"", Name')
    assert track.length == 10
    assert track.tags == [Tag(name="title", value='A "B"')]
    assert track.name == "Name"


def test_parse_extinf_without_tags():
    track = parse_extinf("#EXTINF:-1,Plain")
    assert track.tags == []
    assert track.name == "Plain"


def test_parse_skips_other_directives_and_blank_lines():
    content = "#EXTM3U\n\n#EXTINF:-1,One\n#EXTGRP:Group\nhttp://up.example/1.ts\n\nhttp://up.example/2.ts\n"
    playlist = parse_m3u(content)

    assert [t.uri for t in playlist.tracks] == ["http://up.example/1.ts", "http://up.example/2.ts"]
    assert playlist.tracks[0].name == "One"
    assert playlist.tracks[1].name == ""


def test_parse_requires_header():
    with pytest.raises(PlaylistFetchError):
        parse_m3u("#EXTINF:-1,One\nhttp://up.example/1.ts\n")


def test_parse_rejects_bad_length():
    with pytest.raises(PlaylistFetchError):
        parse_m3u("#EXTM3U\n#EXTINF:abc,One\nhttp://up.example/1.ts\n")


def test_trim_tag_strings():
    playlist = Playlist(tracks=[Track(uri="u", tags=[Tag(name=" tvg-id ", value="  7 "), Tag(name="a", value="x")])])
    trimmed = trim_tag_strings(playlist)

    assert trimmed.tracks[0].tags == [Tag(name="tvg-id", value="7"), Tag(name="a", value="x")]
    # Source playlist untouched
    assert playlist.tracks[0].tags[0].name == " tvg-id "


def test_trim_is_idempotent():
    playlist = Playlist(tracks=[Track(uri="u", tags=[Tag(name=" n", value="v "), Tag(name=" n", value="v ")])])
    once = trim_tag_strings(playlist)
    twice = trim_tag_strings(once)

    assert once == twice
    # Duplicates are kept
    assert len(once.tracks[0].tags) == 2


async def test_load_playlist_from_file(sample_file):
    playlist = await load_playlist(str(sample_file))
    assert len(playlist.tracks) == 3


async def test_load_playlist_trims_tags(tmp_path):
    path = tmp_path / "spaces.m3u"
    path.write_text('#EXTM3U\n#EXTINF:-1 tvg-id=" 7 ",Ch\nhttp://up.example/x.ts\n', encoding="utf-8")

    playlist = await load_playlist(str(path))
    assert playlist.tracks[0].tags == [Tag(name="tvg-id", value="7")]


async def test_load_playlist_missing_file_is_fetch_error(tmp_path):
    with pytest.raises(PlaylistFetchError):
        await load_playlist(str(tmp_path / "missing.m3u"))


async def test_load_playlist_from_url(monkeypatch, sample_m3u):
    fetched = []

    async def fake_fetch(url):
        fetched.append(url)
        return sample_m3u

    monkeypatch.setattr(m3u_parser, "_fetch", fake_fetch)
    playlist = await load_playlist("http://upstream.example/list.m3u")

    assert fetched == ["http://upstream.example/list.m3u"]
    assert len(playlist.tracks) == 3


def test_parse_extinf_value_ending_in_backslash():
    track = parse_extinf('#EXTINF:-1 group-title="A\\\\", Chan')
    assert track.tags == [Tag(name="group-title", value="A\\")]
    assert track.name == "Chan"
