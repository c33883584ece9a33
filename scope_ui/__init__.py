"""Client-side state core for the ring observability UI."""
