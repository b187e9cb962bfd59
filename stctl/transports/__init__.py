"""UDP transaction and discovery transports."""
