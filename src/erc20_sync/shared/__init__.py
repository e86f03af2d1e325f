"""Shared domain models and exceptions."""
