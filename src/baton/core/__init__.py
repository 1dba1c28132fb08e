"""Core building blocks: configuration, errors, events, logging and time."""
