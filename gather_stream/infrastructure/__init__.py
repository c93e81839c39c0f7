"""Infrastructure layer - adapters for the provider, tools and configuration."""
