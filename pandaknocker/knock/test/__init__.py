# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Tests for ``pandaknocker.knock``.
"""
