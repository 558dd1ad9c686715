"""
Core infrastructure shared by all apps: base model, exception taxonomy,
structured logging, caching and DRF permission enforcement.
"""
