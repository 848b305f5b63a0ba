"""Core models, configuration, accounting and orchestration."""
