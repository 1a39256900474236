"""Scheme editing: materials, installation items, modes and locking."""
