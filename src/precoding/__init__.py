"""
PreCoding - aggregate a project's source files into one annotated text file.

This package walks a directory tree, selects source files by name or glob
pattern while skipping ignored, hidden and dot-prefixed folders, and writes
their contents into ``AllSourceFiles.txt`` with a header and language-tagged
code fences, ready to paste into a large language model conversation.
"""

__version__ = "0.1.0"
__author__ = "PreCoding Team"
__license__ = "GPLv3"
