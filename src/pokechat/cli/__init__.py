"""Command line interface for pokechat."""
