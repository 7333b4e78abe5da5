"""Diff parsing and rule-based classification."""
