"""Enscope HTTP API."""
