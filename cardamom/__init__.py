"""
cardamom manages contacts stored in a local vdir or on a CardDAV server.
"""

__version__ = "0.1.0"

PROJECT_HOME = "https://github.com/soywod/cardamom"
BUGTRACKER_HOME = PROJECT_HOME + "/issues"
