"""
Belastingdienst wording for the BTW-aangifte, one YAML file per filing year
(`<TAX_CONSTANTS_PATH>/2025.yaml`). A year without its own file uses the
most recent earlier one, since the box layout rarely changes between years.
"""
import os
from pathlib import Path

import yaml

# (filing year, directory) -> parsed file
_loaded: dict[tuple[int, str], dict] = {}


def _constants_dir() -> Path:
    # Read on every call so tests can point it elsewhere.
    return Path(os.getenv("TAX_CONSTANTS_PATH", "/app/tax_constants"))


def _file_for_year(directory: Path, year: int) -> Path:
    exact = directory / f"{year}.yaml"
    if exact.exists():
        return exact
    earlier = [int(p.stem) for p in directory.glob("*.yaml") if p.stem.isdigit() and int(p.stem) <= year]
    if not earlier:
        raise FileNotFoundError(f"No BTW return constants for filing year {year} in {directory}")
    return directory / f"{max(earlier)}.yaml"


def load_tax_constants(year: int) -> dict:
    directory = _constants_dir()
    key = (year, str(directory))
    if key not in _loaded:
        with open(_file_for_year(directory, year), encoding="utf-8") as f:
            _loaded[key] = yaml.safe_load(f)
    return _loaded[key]


def get_box_labels(year: int) -> dict[str, str]:
    """Box id ('1a' ... '5d') -> official box description."""
    return {str(k): v for k, v in load_tax_constants(year).get("boxes", {}).items()}


def get_section_titles(year: int) -> dict[str, str]:
    """Rubriek number ('1' ... '5') -> section heading."""
    return {str(k): v for k, v in load_tax_constants(year).get("sections", {}).items()}
