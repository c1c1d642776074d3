"""Identification model client."""
