"""HTTP gateway for dhtshell.

Serves the key-value node over HTTP next to the line-protocol shell.
"""
