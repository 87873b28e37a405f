"""Procedure price search API."""
