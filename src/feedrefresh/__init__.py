"""feedrefresh - conditional, rate-limit aware feed refresher."""

__version__ = "0.1.0"
