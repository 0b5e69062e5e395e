"""Complex-plane arithmetic, algorithms, configuration and the reference renderers."""
