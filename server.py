"""Sienna dashboard API server. Run with ``python server.py``."""

from sienna.server import main

if __name__ == "__main__":
    main()
