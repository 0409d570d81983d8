"""Entry point for running multibuffer as a module: python -m multibuffer."""

from multibuffer.api.cli.main import main

if __name__ == "__main__":
    main()
