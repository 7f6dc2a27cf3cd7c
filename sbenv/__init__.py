"""sbenv — isolated, switchable SyftBox environments."""

__version__ = "0.1.0"
