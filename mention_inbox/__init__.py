"""Extract @handle mentions from posts and replies and keep a per-member mention inbox."""

__version__ = "0.1.0"
