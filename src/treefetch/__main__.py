"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: __main__.py.
"""

import sys

from .cli import main

sys.exit(main())
