"""Domain layer: immutable read models returned by the XP engine."""
