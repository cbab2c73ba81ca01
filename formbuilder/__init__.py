"""Local form builder: recursive field trees, live preview and submissions."""

__version__ = "0.1.0"
