"""Core infrastructure shared across RelayFlow components."""
