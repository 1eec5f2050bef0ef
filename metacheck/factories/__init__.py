"""Factory module exports."""

from metacheck.factories.component_factory import ComponentFactory, DefaultComponentFactory

__all__ = ["ComponentFactory", "DefaultComponentFactory"]
