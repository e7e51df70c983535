"""Guided, confirmation-gated scaffolding workflows driven by a declarative spec."""

__version__ = "0.1.0"
