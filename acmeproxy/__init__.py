"""ACME DNS-01 challenge relay."""

# version number like 1.2.3a0, must have at least 2 parts, like 1.2
__version__ = '0.6.0'
