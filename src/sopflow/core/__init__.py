"""Core data model shared by every sopflow component."""
