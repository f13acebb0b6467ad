"""Tests for the GPS Relay integration."""
