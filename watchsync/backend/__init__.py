"""Backend packages for the Trakt import engine."""
