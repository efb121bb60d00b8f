"""Direct messaging chat backend with a realtime Socket.IO relay."""

__version__ = "0.1.0"
