"""
Built-in `sample` provider - a small static catalogue.

Implements every capability so a fresh install has something to search,
browse and import without network access. Some methods are plain functions,
some are async: the host handles both.
"""

from typing import Any

from tunedock.domain.ports.provider import BaseProvider

ARTWORK = "https://example.com/artwork/sample.png"

_SONGS: list[dict[str, Any]] = [
    {
        "id": "1",
        "title": "Sample Song 1",
        "artist": "Sample Artist",
        "album": "Sample Album",
        "artwork": ARTWORK,
        "url": "https://example.com/song1.mp3",
        "duration": 180,
    },
    {
        "id": "2",
        "title": "Sample Song 2",
        "artist": "Sample Artist",
        "album": "Sample Album",
        "artwork": ARTWORK,
        "url": "https://example.com/song2.mp3",
        "duration": 210,
    },
    {
        "id": "3",
        "title": "Another Song",
        "artist": "Another Artist",
        "album": "Another Album",
        "artwork": ARTWORK,
        "url": "https://example.com/song3.mp3",
        "duration": 240,
    },
]

_ALBUMS = [
    {"id": "sample-album", "title": "Sample Album", "artist": "Sample Artist", "artwork": ARTWORK},
    {"id": "another-album", "title": "Another Album", "artist": "Another Artist", "artwork": ARTWORK},
]

_ARTISTS = [
    {"id": "sample-artist", "name": "Sample Artist", "avatar": ARTWORK},
    {"id": "another-artist", "name": "Another Artist", "avatar": ARTWORK},
]

_SHEETS = [
    {"id": "favourites", "title": "Sample Favourites", "artwork": ARTWORK, "song_ids": ["1", "3"]},
    {"id": "chill", "title": "Chill Samples", "artwork": ARTWORK, "song_ids": ["2"]},
]

_TAGS = {
    "pinned": [{"id": "pop", "title": "Pop"}],
    "groups": [
        {"title": "Mood", "data": [{"id": "chill", "title": "Chill"}, {"id": "happy", "title": "Happy"}]},
    ],
}

_TAG_SHEETS = {"pop": ["favourites"], "chill": ["chill"], "happy": ["favourites"]}

_CHARTS = [
    {"title": "Sample Charts", "data": [{"id": "top", "title": "Top Samples", "artwork": ARTWORK}]},
]

_LYRIC = (
    "[00:00.00] Sample Lyrics\n"
    "[00:05.00] For demonstration purposes\n"
    "[00:10.00] This is a sample provider"
)

SONG_URL_PREFIX = "sample.com/song/"
SHEET_URL_PREFIX = "sample.com/sheet/"


def _matches(item: dict[str, Any], query: str, fields: tuple[str, ...]) -> bool:
    needle = query.strip().lower()
    return any(needle in str(item.get(f) or "").lower() for f in fields)


def _song(song_id: str) -> dict[str, Any] | None:
    return next((dict(s) for s in _SONGS if s["id"] == song_id), None)


def _sheet_songs(sheet_id: str) -> list[dict[str, Any]]:
    sheet = next((s for s in _SHEETS if s["id"] == sheet_id), None)
    if sheet is None:
        return []
    return [song for song in (_song(i) for i in sheet["song_ids"]) if song is not None]


class SampleProvider(BaseProvider):
    """Static demo catalogue."""

    platform = "sample"
    version = "1.0.0"
    author = "tunedock"
    supported_search_type = ["music", "album", "artist", "sheet"]
    default_search_type = "music"
    cache_control = "cache"

    async def search(self, query: str, page: int, media_type: str) -> dict[str, Any]:
        if media_type == "music":
            data = [dict(s) for s in _SONGS if _matches(s, query, ("title", "artist", "album"))]
        elif media_type == "album":
            data = [dict(a) for a in _ALBUMS if _matches(a, query, ("title", "artist"))]
        elif media_type == "artist":
            data = [dict(a) for a in _ARTISTS if _matches(a, query, ("name",))]
        elif media_type == "sheet":
            data = [
                {k: v for k, v in s.items() if k != "song_ids"}
                for s in _SHEETS
                if _matches(s, query, ("title",))
            ]
        else:
            data = []
        # Everything fits on one page
        return {"is_end": True, "data": data if page <= 1 else []}

    async def get_media_source(self, item: dict[str, Any], quality: str) -> dict[str, Any] | None:
        song = _song(str(item.get("id")))
        url = item.get("url") or (song or {}).get("url")
        return {"url": url, "quality": quality} if url else None

    def get_music_info(self, item: dict[str, Any]) -> dict[str, Any] | None:
        return _song(str(item.get("id")))

    def get_lyric(self, item: dict[str, Any]) -> dict[str, Any] | None:
        return {"raw_text": _LYRIC} if _song(str(item.get("id"))) else None

    async def get_album_info(self, album: dict[str, Any], page: int) -> dict[str, Any] | None:
        match = next((a for a in _ALBUMS if a["id"] == album.get("id")), None)
        if match is None:
            return None
        return {
            "album_item": dict(match),
            "items": [dict(s) for s in _SONGS if s["album"] == match["title"]],
            "is_end": True,
        }

    async def get_sheet_info(self, sheet: dict[str, Any], page: int) -> dict[str, Any] | None:
        match = next((s for s in _SHEETS if s["id"] == sheet.get("id")), None)
        if match is None:
            return None
        return {
            "sheet_item": {k: v for k, v in match.items() if k != "song_ids"},
            "items": _sheet_songs(match["id"]),
            "is_end": True,
        }

    async def get_artist_works(
        self, artist: dict[str, Any], page: int, media_type: str
    ) -> dict[str, Any]:
        name = artist.get("title") or artist.get("name")
        if media_type == "album":
            data = [dict(a) for a in _ALBUMS if a["artist"] == name]
        else:
            data = [dict(s) for s in _SONGS if s["artist"] == name]
        return {"is_end": True, "data": data}

    def import_single_item(self, url_like: str) -> dict[str, Any] | None:
        if SONG_URL_PREFIX not in url_like:
            return None
        song_id = url_like.split(SONG_URL_PREFIX, 1)[1].strip("/")
        song = _song(song_id)
        if song is not None:
            return song
        return {
            "id": song_id,
            "title": f"Imported Song {song_id}",
            "artist": "Sample Artist",
            "album": "Sample Album",
            "artwork": ARTWORK,
            "url": url_like,
            "duration": 180,
        }

    def import_sheet(self, url_like: str) -> list[dict[str, Any]] | None:
        if SHEET_URL_PREFIX not in url_like:
            return None
        songs = _sheet_songs(url_like.split(SHEET_URL_PREFIX, 1)[1].strip("/"))
        return songs or None

    def get_top_lists(self) -> list[dict[str, Any]]:
        return [
            {"title": group["title"], "data": [dict(c) for c in group["data"]]}
            for group in _CHARTS
        ]

    async def get_top_list_detail(self, chart: dict[str, Any], page: int) -> dict[str, Any]:
        items = [dict(s) for s in _SONGS] if chart.get("id") == "top" else []
        return {"top_list_item": {"id": chart.get("id"), "title": chart.get("title")}, "items": items, "is_end": True}

    def get_recommend_tags(self) -> dict[str, Any]:
        return {
            "pinned": [dict(t) for t in _TAGS["pinned"]],
            "groups": [
                {"title": g["title"], "data": [dict(t) for t in g["data"]]}
                for g in _TAGS["groups"]
            ],
        }

    async def get_sheets_by_tag(self, tag: dict[str, Any], page: int) -> dict[str, Any]:
        sheet_ids = _TAG_SHEETS.get(str(tag.get("id")), [])
        data = [
            {k: v for k, v in s.items() if k != "song_ids"}
            for s in _SHEETS
            if s["id"] in sheet_ids
        ]
        return {"is_end": True, "data": data}
