"""Dreamgate - HTTP gateway to Dreamina image generation through a logged-in browser."""

__version__ = "0.1.0"
