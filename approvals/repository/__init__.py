"""Persistence for documents, approval levels and signature records."""
