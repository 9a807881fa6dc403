"""Hierarchical time tracking stored as JSON blocks inside markdown documents."""
