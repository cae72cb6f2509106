"""Persistence schema for the LifeRPG XP engine."""
