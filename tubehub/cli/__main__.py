"""
Entry point for CLI module execution.
Allows running: python -m tubehub.cli
"""
from tubehub.cli.maintenance import main

if __name__ == '__main__':
    main()
