"""Custom slash command expansion for chat CLIs."""
__version__ = "0.1.0"
