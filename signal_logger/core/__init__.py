"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — library diagnostic logging (JSON / pretty)
    errors          — exception hierarchy
    platform        — environment/side descriptor for default labels
"""
