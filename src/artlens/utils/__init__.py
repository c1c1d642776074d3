"""Shared text and parsing helpers."""
