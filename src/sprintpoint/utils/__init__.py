"""Shared utilities for Sprintpoint."""
