from .http import HttpBackend
from .memory import InMemoryBackend

__all__ = ["HttpBackend", "InMemoryBackend"]
