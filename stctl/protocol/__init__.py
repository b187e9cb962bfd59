"""Packet framing, checksum, and value encoding."""
