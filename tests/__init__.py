"""Test suite for ref-store."""
