"""Node connection configuration."""
