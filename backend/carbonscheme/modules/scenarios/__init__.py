"""Scenario snapshots: capture, restore and compare scheme states."""
