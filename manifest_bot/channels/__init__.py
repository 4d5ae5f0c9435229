"""Messaging platform adapters."""
