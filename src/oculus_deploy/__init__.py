"""Inventory, gap analysis and CDK deployment driver for the Oculus survey stack."""

__version__ = "1.0.0"
