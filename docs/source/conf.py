#!/usr/bin/env python3
# Configuration file for the wearable_relay Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import os
import sys

# -- Project information -----------------------------------------------------

project = "Wearable Relay"
release = "0.1.0"

# -- General configuration ---------------------------------------------------

sys.path.insert(0, os.path.abspath("../../src/"))

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",  # link to local code (button)
    "myst_parser",  # to use Markdown inside reST
]
pygments_style = "sphinx"

templates_path = ["_templates"]
exclude_patterns = []

language = "en"

# -- Options for HTML output -------------------------------------------------

html_theme = "furo"

# --- Extension config ----

autodoc_default_options = {
    "members": True,
    "private-members": False,
}
autodoc_mock_imports = ["bleak"]  # so the docs build without a BLE stack

myst_enable_extensions = ["colon_fence"]
myst_heading_anchors = 4
