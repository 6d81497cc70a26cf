"""binpin core — models, config, services."""
