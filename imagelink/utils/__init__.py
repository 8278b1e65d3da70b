"""Utility helpers for imagelink."""
