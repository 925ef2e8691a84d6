"""Small helpers shared across vidup."""
