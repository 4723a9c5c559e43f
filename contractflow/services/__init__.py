"""Business operations; every function takes a SQLAlchemy session first."""
