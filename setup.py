"""Setup script for rocket-channel-flow package.

This setup.py is provided for backward compatibility.
The project is configured using pyproject.toml and can be installed using:
    pip install .
"""

from setuptools import setup

# All configuration is in pyproject.toml
setup()
