"""
Run the preprocessing pipeline on the raw worker productivity CSV.

Usage:
    # Defaults from config/config.yaml
    python scripts/preprocess.py

    # Explicit input and output
    python scripts/preprocess.py --input remote_worker_productivity_raw.csv \
        --output-dir preprocessing/processed_data --seed 42

Exits non-zero on failure; the output directory then keeps the previous
run's artifacts (or stays absent).
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.data.preprocess import main


if __name__ == "__main__":
    sys.exit(main())
