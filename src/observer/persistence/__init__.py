"""Document store persistence (SQLAlchemy asyncio)."""
