"""Configuration for reassembler."""
