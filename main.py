import sys

from src.forge.app.forge_app import run_cli


if __name__ == "__main__":
    """
    Main entry point for the Forge chat CLI.
    """
    sys.exit(run_cli(sys.argv[1:]))
