"""Toolchain adapters."""
