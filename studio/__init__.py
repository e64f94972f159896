"""Studio Director: conversation-driven video production service."""
