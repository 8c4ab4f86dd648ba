"""pokechat: streaming tool-augmented chat with a Pokédex assistant."""

__version__ = "0.1.0"
