"""Rendering - HTML transcripts and the run index."""

from philosophy_dialog.rendering.html import TranscriptEntry, TranscriptRenderer, build_entries

__all__ = ["TranscriptEntry", "TranscriptRenderer", "build_entries"]
