# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Shared pandaknocker components.
"""

__all__ = [
    'InvalidHost', 'validate_host', 'ipaddress_from_string',
]

from ._net import InvalidHost, validate_host, ipaddress_from_string
