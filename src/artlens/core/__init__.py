"""Async coordination primitives."""
