"""
Configuration storage for the package resolver.

This package is responsible for:
* Determining the data directory (via env var + sensible default).
* Loading and persisting the provider configuration (provider.json).
* Loading and saving the configured package sources (sources.yaml).
"""
