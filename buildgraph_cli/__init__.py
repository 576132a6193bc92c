"""BuildGraph: dependency-aware incremental build orchestration."""

__version__ = "0.1.0"
