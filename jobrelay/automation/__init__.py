"""Browser automation: driver adapters, browser pool, login and posting."""
