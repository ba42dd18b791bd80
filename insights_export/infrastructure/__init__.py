"""File-backed collaborators: credentials, saved configurations, audit log."""
