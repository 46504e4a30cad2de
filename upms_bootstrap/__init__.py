"""UPMS container bootstrap: prepares the project, its databases and runs the server."""

__version__ = "0.1.0"
