"""Protocol logic for messaging patterns over multipart-frame sockets."""

__version__ = "0.1.0"