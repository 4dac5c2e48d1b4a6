"""Roadmate learning-profile backend."""
