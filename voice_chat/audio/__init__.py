"""Microphone access and audio segment capture."""
