"""
App package initializer.

Holds the FastAPI application (`main.py`), its HTTP endpoints (`api/`) and the
sandbox execution core (`core/Sandbox`).
"""
