"""File layout and I/O helpers."""
