"""Configuration, clock and HTTP plumbing shared by the timeline modules."""
