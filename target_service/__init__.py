"""Stub order-intake service used as a local load target."""
