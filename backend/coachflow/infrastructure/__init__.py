"""Infrastructure — adapters for the language-model API, database and logging."""
