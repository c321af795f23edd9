"""Command runner, registry, per-repository operations and fan-out."""
