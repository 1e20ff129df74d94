# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
The ``knocker`` command line tool.
"""
