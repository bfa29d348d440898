"""Cross-cutting infrastructure: configuration, logging, errors, persistence, DI."""
