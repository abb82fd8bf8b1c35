"""Stream benchmark helpers: tree shapes, procedure arguments, memory sampling and CSV/Markdown reports."""

__version__ = "0.1.0"