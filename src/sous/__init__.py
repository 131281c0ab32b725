"""
Sous -- credential vault sync for Android signing keystores.

Fetch the encrypted keystore from a git vault, decrypt it with a
passphrase-derived key, and hand back the plaintext path.
"""

import os

__version__ = "0.1.0"
__author__ = "Jonathan Nogueira"

SOUS_HOME = os.environ.get("SOUS_HOME", "~/.sous")
