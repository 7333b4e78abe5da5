"""Git access for collecting changes."""
