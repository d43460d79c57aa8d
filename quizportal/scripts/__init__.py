"""Operational scripts for the portal backend."""
