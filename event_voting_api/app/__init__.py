"""
Application package initializer.

Contains the FastAPI entrypoint and its submodules: ``core`` for
settings, logging, persistence, errors and auth; ``schemas`` for the
wire models; ``services`` for the voting logic; ``api`` for the routes.
"""

from .main import app  # noqa: F401
