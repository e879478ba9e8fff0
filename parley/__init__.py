"""Conversation orchestration core for a terminal AI client."""
