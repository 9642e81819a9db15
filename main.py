"""
Asana Board Export — Entry Point

Usage:
    python main.py
    python main.py --config path/to/config.yaml --output board.json --yes
"""

from board_export.cli import main

if __name__ == "__main__":
    main()
