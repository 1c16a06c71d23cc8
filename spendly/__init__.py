"""Spendly assistant backend: budget chat, usage accounting and insights."""
