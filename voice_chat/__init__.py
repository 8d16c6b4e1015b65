"""
Voice Chat - spoken conversations with an AI assistant.

Records microphone audio, transcribes it with a speech-to-text provider,
generates a reply from a language model over the accumulated conversation,
and speaks the reply back through a text-to-speech provider.
"""

__version__ = "1.0.0"
