"""Artifact stores and role directory adapters."""
