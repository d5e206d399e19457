"""HTTP gate server, Redis store, connection pools and chat-server status service for a chat system."""

__version__ = "0.1.0"