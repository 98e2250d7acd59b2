"""Packaged resource files (library configuration defaults)."""
