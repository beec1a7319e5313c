"""Asynchronous fetchers for the configured event sources."""
