"""CI integration helpers."""
