"""Prompt enhancement service."""
