# Copyright 2023, QC Design GmbH and the matchdec contributors
# SPDX-License-Identifier: Apache-2.0
# Configuration file for the Sphinx documentation builder.
#
# This file only contains a selection of the most common options. For a full
# list see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Path setup --------------------------------------------------------------

import pathlib
import sys

sys.path.insert(0, str(pathlib.Path(__file__).absolute().parent.parent / "src"))


# -- Project information -----------------------------------------------------

project = "matchdec"
copyright = "2023, QC Design GmbH"
author = "QC Design GmbH"


# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.intersphinx",
    "sphinx.ext.mathjax",
    "sphinx.ext.napoleon",
    "sphinx.ext.todo",
    "sphinx.ext.viewcode",
    "sphinx_copybutton",
]

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "numpy": ("https://numpy.org/doc/stable/", None),
    "rustworkx": ("https://www.rustworkx.org/", None),
}

autodoc_member_order = "groupwise"

templates_path = ["_templates"]
exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]


# -- Options for HTML output -------------------------------------------------

html_theme = "furo"

nitpicky = True
nitpick_ignore = []
nitpick_ignore_regex = [
    ("py:class", r"(jsonschema|numpy|pymatching|rustworkx|stim)\..*"),
]

# Show inheritance and special members.
autodoc_default_options = {
    # Note: To disable an option, just comment the line. Changing `None` to something
    # else will not have an effect.
    "members": True,
    "undoc-members": None,
    "special-members": True,  # __special__
    "show-inheritance": None,
    # Note: __init__ is excluded here because a class docstring
    # should contain ".. automethod:: __init__". This way, __init__ is shown above
    # all other methods.
    "exclude-members": (
        "__abstractmethods__,__annotations__,"
        "__dataclass_fields__,__dataclass_params__,__post_init__,"
        "__dict__,__hash__,__init__,__match_args__,__module__,__slots__,__weakref__"
    ),
}

# copybutton customisations - exclude line-numbers, prompt characters, and outputs
copybutton_exclude = ".linenos, .gp, .go"

autosummary_generate = False

html_show_sourcelink = True
todo_include_todos = True
