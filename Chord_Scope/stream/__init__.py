"""Wire contract shared with the simulation backend."""
