"""FishCap resilient structured-generation client."""

__version__ = "0.1.0"
