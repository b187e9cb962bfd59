"""Control client for Studio Technologies intercom devices."""
