"""Persistent settings for mkimg."""
