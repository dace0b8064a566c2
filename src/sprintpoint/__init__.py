"""Sprintpoint: story point estimation through an LLM tool-calling loop."""

__version__ = "0.1.0"
