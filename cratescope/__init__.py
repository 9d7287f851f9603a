"""Crate index lookups, toolchain version resolution and local mirror building."""

__version__ = "0.3.0"
