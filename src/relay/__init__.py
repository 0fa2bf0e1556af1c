"""Bidirectional relay between Twilio Media Streams and the OpenAI Realtime API.

One `RelaySession` exists per accepted telephony socket and owns exactly one
AI-side socket for its whole lifetime.
"""
