"""Test configuration for the notice_banner suite."""

import os
import sys

# Make ``notice_banner`` importable from a plain checkout, without an
# editable install. Helpers shared between test modules (``tests/fakes.py``)
# are found through pytest's default rootdir-relative import mode.
ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)
