"""hmytodo - a multi-user todo tracker with 24 hour deadlines."""

__version__ = "0.1.0"
