"""Recording session, conversation store and the voice pipeline."""
