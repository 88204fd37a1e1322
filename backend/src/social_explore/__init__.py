"""Social Explore - follow suggestions and explore feed ranking."""

__version__ = "0.1.0"
