"""Order store: SQLAlchemy engine, models and session helpers."""
