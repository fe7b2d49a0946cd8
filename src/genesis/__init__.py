"""genesis: declarative graph builder and causality-aware bulk loader."""

__version__ = "0.3.0"
