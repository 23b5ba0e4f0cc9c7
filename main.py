"""
Main CLI for reconciling the megaverse map with its goal.

Usage:
    python main.py --candidate-id <id>
    python main.py --dry-run --show-grid
"""
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))


from megaverse.runner import main_cli


if __name__ == "__main__":
    main_cli()
