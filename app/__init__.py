"""Let's Travel Together booking backend."""
