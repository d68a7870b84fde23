import json
from pathlib import Path

from serp_collector.config import KEYWORDS_FILE


def load_keywords(path=None) -> list[str]:
    """Read the keyword file and return a list of keyword strings.

    A .json file must hold an array of strings; anything else is read as
    one keyword per line. Raises OSError or ValueError when the file can't
    be used.
    """
    filepath = Path(path or KEYWORDS_FILE)
    with open(filepath, "r", encoding="utf-8") as f:
        if filepath.suffix == ".json":
            data = json.load(f)
            if not isinstance(data, list) or not all(isinstance(k, str) for k in data):
                raise ValueError(f"{filepath} must contain a JSON array of strings")
            return [k.strip() for k in data if k.strip()]

        keywords = []
        for line in f:
            line = line.strip()
            if not line:
                continue
            keywords.append(line)
    return keywords
