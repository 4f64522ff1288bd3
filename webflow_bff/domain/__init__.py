"""Pure domain utilities: routing, session tokens, errors, shaping, CSV export.

These modules are intentionally free of FastAPI/HTTP concerns so they can be
unit-tested on their own and reused by both the server and the smoke runner.
"""
__all__ = ["routing", "tokens", "errors", "shaping", "csv_export"]
