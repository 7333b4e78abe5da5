"""Summary composition, templates and output size governing."""
