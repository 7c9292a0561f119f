"""Command line extensions for the ``litestar`` CLI."""

from sketchparty.cli.words import SketchPartyCLIPlugin, words_group

__all__ = ["SketchPartyCLIPlugin", "words_group"]
