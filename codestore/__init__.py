"""Filesystem-backed storage service for uploaded codebases."""

__version__ = "1.0.0"
