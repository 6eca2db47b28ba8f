"""Allow ``python -m GuardedFetch``."""

from .cli import main

if __name__ == "__main__":
    main()
