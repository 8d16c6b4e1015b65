"""HTTP surface exposing transcription, response and speech routes."""
