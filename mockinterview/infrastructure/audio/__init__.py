"""
Audio input and speech services for the interview engine.

This module contains all audio-related functionality organized into clear submodules:
- processing: signal helpers and the microphone device
- speech: speech-to-text (sync, streaming, continuous VAD) and text-to-speech
"""
