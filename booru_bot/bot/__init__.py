"""Discord bot wiring."""
