"""Agentage desktop core — OAuth identity, model providers and streaming chat."""

__version__ = "0.3.0"
