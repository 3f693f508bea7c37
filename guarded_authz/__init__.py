"""
Role and permission authorization engine for Django projects.
"""

import os

__version__ = "0.1.0"

ROOT_DIRECTORY = os.path.dirname(os.path.abspath(__file__))
