"""Tests for the CPU AIR constraint layer."""
