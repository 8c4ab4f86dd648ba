"""Tool framework for the chat turn.

Provides the tool protocol, the read-only registry, and the default
Pokédex tools (PokéAPI lookup and move recommender).
"""
