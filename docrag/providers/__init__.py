"""Concrete provider adapters, one subpackage per capability."""
