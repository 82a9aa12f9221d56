"""cpanproc - mirror a CPAN repository and expand its archives for processing."""

__version__ = "0.7.0"
