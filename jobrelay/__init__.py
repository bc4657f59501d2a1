"""jobrelay: automated job post publishing with chat context relay."""

__version__ = "0.1.0"
