"""Domain models, protocols, constants and exceptions."""
