"""Console logging, paths, settings, credentials and the AI reviewer."""
