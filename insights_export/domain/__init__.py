"""Domain models for insights exports."""
