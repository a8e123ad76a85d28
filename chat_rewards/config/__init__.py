"""Settings, logging and scoring rules loading."""
