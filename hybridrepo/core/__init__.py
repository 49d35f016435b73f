"""Configuration, engine setup, logging, retry and error types."""
