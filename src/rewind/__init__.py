"""Rewind: replay cache for streamed LLM responses."""

__version__ = "0.1.0"
