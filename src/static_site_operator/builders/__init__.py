"""Builders turning StaticSite specs into runtime objects."""
