"""Download the UCI auto-mpg dataset.

Dataset: Quinlan (1993), Auto MPG. UCI Machine Learning Repository.
         398 cars, 8 numeric attributes plus the car name.
DOI:     https://doi.org/10.24432/C5859H

Usage (from project root):
    python scripts/download_auto_mpg.py

What it does:
    1. Creates  data/auto_mpg/
    2. Downloads auto-mpg.data (~30 KB)
    3. Parses it and verifies the record and column counts

After running, point an experiment at the local copy with:
    python -m mpg_bayes --data data/auto_mpg/auto-mpg.data
"""

import sys
import urllib.request
from pathlib import Path

from mpg_bayes.config import AUTO_MPG_URI
from mpg_bayes.dataset import load_dataset
from mpg_bayes.errors import LoadError

OUT_DIR = Path(__file__).parent.parent / "data" / "auto_mpg"
EXPECTED_RECORDS = 398


def download(url: str, dest: Path) -> None:
    print(f"Downloading {url}")
    print(f"  -> {dest}")
    dest.parent.mkdir(parents=True, exist_ok=True)

    def _progress(block_count, block_size, total_size):
        downloaded = block_count * block_size
        if total_size > 0:
            pct = min(downloaded / total_size * 100, 100)
            bar = "#" * int(pct / 5)
            print(f"\r  [{bar:<20}] {pct:5.1f}%", end="", flush=True)

    urllib.request.urlretrieve(url, dest, reporthook=_progress)
    print()


def main():
    data_path = OUT_DIR / "auto-mpg.data"

    if data_path.exists():
        print(f"[SKIP] File already exists: {data_path}")
    else:
        download(AUTO_MPG_URI, data_path)

    try:
        df = load_dataset(str(data_path), verbose=True)
    except LoadError as exc:
        print(f"[ERROR] {exc}")
        sys.exit(1)

    if len(df) != EXPECTED_RECORDS:
        print(f"[WARN] Expected {EXPECTED_RECORDS} records, found {len(df)}.")
        sys.exit(1)

    print(f"[OK] {len(df)} records in {data_path}")
    print(f"  Missing horsepower: {int(df['horsepower'].isna().sum())}")
    print("\nRun both model families on it:")
    print(f"  python -m mpg_bayes --data {data_path} --output-dir results")


if __name__ == "__main__":
    main()
