"""Deterministic matching and multi-source verification of extracted bibliographic references."""
