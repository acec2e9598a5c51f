"""Discord bot for a community's introduction and social link channels."""
