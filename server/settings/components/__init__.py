"""Shared helpers for settings components."""

from pathlib import Path

from decouple import AutoConfig

# Repository root: server/settings/components/__init__.py -> ../../..
BASE_DIR = Path(__file__).parent.parent.parent.parent

# Values come from the environment first, then from config/.env
config = AutoConfig(search_path=BASE_DIR.joinpath('config'))
