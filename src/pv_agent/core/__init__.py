"""Core building blocks: configuration, logging, errors, models, metrics and the SQLite store."""
