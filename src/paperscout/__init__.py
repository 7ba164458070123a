"""paperscout: research-paper discovery, organization and recommendations."""

__version__ = "0.1.0"
