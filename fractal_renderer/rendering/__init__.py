"""Pixel coloring, image buffers and image file output."""
