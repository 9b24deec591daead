"""Infrastructure: database engine and sessions."""
