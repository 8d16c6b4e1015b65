"""Setup script for the voice chat pipeline."""

from setuptools import setup, find_packages

setup(
    name="voice-chat",
    version="1.0.0",
    description="Spoken conversations with an AI assistant: record, transcribe, respond, speak",
    author="Your Name",
    packages=find_packages(include=["voice_chat", "voice_chat.*"]),
    python_requires=">=3.11",
    install_requires=[
        "python-dotenv>=1.0.0",
        "google-generativeai>=0.3.0",
        "elevenlabs>=2.0.0",
        "pygame>=2.5.0",
        "structlog>=23.0.0",
        "click>=8.0.0",
        "numpy>=1.24.0",
        "sounddevice>=0.4.6",
        "openai>=1.0.0",
        "flask>=3.0.0",
        "flask-cors>=4.0.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "voice-chat=voice_chat.cli.main:cli",
        ],
    },
)
