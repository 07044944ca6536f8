"""Session token handling for outgoing requests."""
