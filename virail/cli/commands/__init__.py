"""Command groups for the virail CLI."""
