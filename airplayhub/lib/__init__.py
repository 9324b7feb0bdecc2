"""Shared building blocks for the AirPlay Hub service."""
