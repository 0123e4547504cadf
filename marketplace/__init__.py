"""South African property marketplace backend: listings, insights, Explore feed and billing."""

__version__ = "0.1.0"
