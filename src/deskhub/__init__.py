"""deskhub: resource delivery and view lifecycle for a multi-project desktop shell."""

__version__ = "0.1.0"
