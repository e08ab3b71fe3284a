"""Core agent components: configuration, identity, scanning and scheduling."""
