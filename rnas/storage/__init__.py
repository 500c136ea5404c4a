"""Storage layer: disk image, mount table, marker files and lifecycle lock."""
