"""Ruleloom - product configurator rule engine and schema store."""

__version__ = "0.3.0"
