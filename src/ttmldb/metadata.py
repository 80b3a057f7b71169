"""
Metadata key canonicalisation and the submission summary.
"""

from .models import Document

TITLE = "musicName"
ARTISTS = "artists"
ALBUM = "album"
NCM_ID = "ncmMusicId"
QQ_ID = "qqMusicId"
SPOTIFY_ID = "spotifyId"
APPLE_ID = "appleMusicId"
ISRC = "isrc"
AUTHOR_GITHUB = "ttmlAuthorGithub"
AUTHOR_GITHUB_LOGIN = "ttmlAuthorGithubLogin"
SONGWRITERS = "songwriters"

PLATFORM_ID_KEYS = (NCM_ID, QQ_ID, SPOTIFY_ID, APPLE_ID)

# lower-cased alias -> canonical key
_ALIASES = {
    "musicname": TITLE,
    "title": TITLE,
    "artists": ARTISTS,
    "artist": ARTISTS,
    "album": ALBUM,
    "ncmmusicid": NCM_ID,
    "qqmusicid": QQ_ID,
    "spotifyid": SPOTIFY_ID,
    "applemusicid": APPLE_ID,
    "isrc": ISRC,
    "ttmlauthorgithub": AUTHOR_GITHUB,
    "ttmlauthorgithublogin": AUTHOR_GITHUB_LOGIN,
    "songwriters": SONGWRITERS,
    "songwriter": SONGWRITERS,
}


def canonical_key(key: str) -> str | None:
    """Map a metadata key to its canonical spelling, or None if unknown."""
    return _ALIASES.get(key.strip().lower())


def collect_values(doc: Document, canonical: str) -> list[str]:
    """All trimmed, non-empty values stored under any alias of a key, deduplicated."""
    seen: set[str] = set()
    values: list[str] = []
    for entry in doc.metadata:
        if canonical_key(entry.key) != canonical:
            continue
        for value in entry.values:
            value = value.strip()
            if value and value not in seen:
                seen.add(value)
                values.append(value)
    return values


def summarize_metadata(doc: Document) -> dict:
    """Build the title/artists/album/platformIds summary of a document."""
    return {
        "title": collect_values(doc, TITLE),
        "artists": collect_values(doc, ARTISTS),
        "album": collect_values(doc, ALBUM),
        "platformIds": {key: collect_values(doc, key) for key in PLATFORM_ID_KEYS},
    }
