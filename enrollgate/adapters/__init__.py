"""Adapters - Infrastructure implementations of domain ports."""
