"""Sphinx configuration for Contact Manager documentation."""

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath(".."))

project = "Contact Manager"
current_year = datetime.now().year
copyright = f"{current_year}, Contact Manager"
author = "Contact Manager Team"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
]

templates_path = ["_templates"]
exclude_patterns: list[str] = ["_build"]

html_theme = "alabaster"

html_static_path = ["_static"]
