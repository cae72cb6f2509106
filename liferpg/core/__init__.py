"""Infrastructure: configuration, logging, database and input validation."""
