"""CLI module for imagelink."""
