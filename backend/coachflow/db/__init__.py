"""Database Infrastructure — SQLAlchemy declarative base for the durable memory log."""
