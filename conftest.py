"""Makes ``main`` and ``pulser`` importable when running pytest from a checkout."""
