"""Utility functions for the Static Site Operator."""
