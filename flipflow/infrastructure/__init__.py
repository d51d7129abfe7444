"""Infrastructure layer: settings and SQLite persistence."""
