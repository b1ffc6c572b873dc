"""
Configuration module for RelayChat application.
Stores all application settings, read once from the environment.
"""

import os


class Config:
    """Application configuration class."""

    # Server Configuration
    DEFAULT_HOST = os.environ.get("RELAYCHAT_HOST", "0.0.0.0")
    DEFAULT_SERVER_PORT = int(os.environ.get("PORT", "8080"))

    # Maximum number of frames waiting for a single slow peer
    OUTBOUND_QUEUE_SIZE = int(os.environ.get("RELAYCHAT_QUEUE_SIZE", "256"))

    # Seconds a closing connection gets to flush its pending frames
    CLOSE_TIMEOUT = 5.0

    # Logging environment (development, production, testing)
    ENVIRONMENT = os.environ.get("RELAYCHAT_ENV", "development")


# Create config instance
config = Config()
