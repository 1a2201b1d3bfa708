#!/usr/bin/env python

from setuptools import setup

# Metadata and dependencies are declared in setup.cfg. Retain this file for
# compatibility with legacy builds or build tool versions.
setup()
