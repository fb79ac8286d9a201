"""Shared logging, types, errors and helpers for the map bundle tools."""
