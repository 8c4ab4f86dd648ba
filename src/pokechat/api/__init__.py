"""HTTP API for pokechat."""
