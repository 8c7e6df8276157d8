"""melody: git-flow style release automation."""

__version__ = "0.4.0"
