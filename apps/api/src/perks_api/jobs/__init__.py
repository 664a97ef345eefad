"""Scheduled maintenance jobs for promotions."""
