"""
TTML Lyric DB - Ingestion pipeline for community-submitted TTML lyrics.

A checker for:
- Parsing word-timed and line-timed TTML lyric files
- Normalizing whitespace between and inside syllables
- Validating timing and content
- Re-serializing lyrics into canonical, compressed TTML
- Summarizing metadata for review
"""

__version__ = "0.1.0"
