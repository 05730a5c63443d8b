"""Version information for branchlore."""

__version__ = "0.1.0"
