"""Transport handlers, one module per broker family."""
