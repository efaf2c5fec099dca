"""Core application plumbing: config, logging, errors and extensions."""
