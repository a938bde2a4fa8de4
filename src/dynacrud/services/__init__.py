"""Services: persistence and remote config loading."""
