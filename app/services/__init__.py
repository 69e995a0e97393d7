"""Signing workflow services."""
