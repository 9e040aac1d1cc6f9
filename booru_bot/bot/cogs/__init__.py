"""Bot command and event cogs."""
