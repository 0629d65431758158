"""Infrastructure adapters: upstream HTTP, SQLite persistence and observability."""
