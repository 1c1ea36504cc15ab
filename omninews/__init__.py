"""RSS channel and item storage, embedding search and feed discovery for a news reader."""

__version__ = "0.1.0"