"""Shared service-layer primitives: base service, errors and ports."""
