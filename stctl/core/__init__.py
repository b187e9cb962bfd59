"""Loader, tables, service layer, and shared models."""
