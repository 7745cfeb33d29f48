"""Shared helpers for quarterly period indexes."""
