"""Trade journal backend service."""
