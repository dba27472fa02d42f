"""moviechat - a movie recommender chat agent with application-side actions."""

__version__ = "0.1.0"
