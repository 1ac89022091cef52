"""Allows ``python -m mediainterface_build``"""

from .main import main

if __name__ == "__main__":
    main()
