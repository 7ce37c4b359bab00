"""SQLAlchemy persistence for chunks and ingestion jobs."""
