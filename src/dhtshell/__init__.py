"""dhtshell -- Interactive command shell server for a DHT node.

This package multiplexes a single long-lived key-value store node across
a local console and any number of remote line-protocol clients. Commands
are dispatched through a static registry, remote clients are gated by an
optional access list, and the whole server can be suspended, resumed or
halted from any session.
"""

__version__ = "0.1.0"
