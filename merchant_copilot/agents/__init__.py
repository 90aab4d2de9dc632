"""Answer synthesis agents."""
