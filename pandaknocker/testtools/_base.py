# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Base classes for unit tests.
"""

import tempfile
from unittest import SkipTest

import testtools

from twisted.python import log
from twisted.python.filepath import FilePath
from twisted.trial import unittest


class _MktempMixin(object):
    """
    ``mktemp`` support for testtools TestCases.
    """

    def mktemp(self):
        """
        Create a temporary path for use in tests.

        Provided for compatibility with Twisted's ``TestCase``.

        :return: Path to non-existent file or directory.
        """
        return self.make_temporary_path().path

    def make_temporary_path(self):
        """
        Create a temporary path for use in tests.

        :return: Path to non-existent file or directory.
        :rtype: FilePath
        """
        return self.make_temporary_directory().child('temp')

    def make_temporary_directory(self):
        """
        Create a temporary directory for use in tests.

        The directory is removed when the test finishes.

        :return: Path to directory.
        :rtype: FilePath
        """
        directory = FilePath(tempfile.mkdtemp(prefix='pandaknocker-'))
        self.addCleanup(_remove_if_exists, directory)
        return directory

    def make_temporary_file(self, content=b'', permissions=None):
        """
        Create a temporary file for use in tests.

        :param bytes content: Content to write to the file.
        :param int permissions: The permissions for the file
        :return: Path to file.
        :rtype: FilePath
        """
        path = self.make_temporary_path()
        path.setContent(content)
        if permissions is not None:
            path.chmod(permissions)
        return path


def _remove_if_exists(path):
    """
    Remove ``path`` and everything beneath it, making it writeable first so
    tests that revoke permissions clean up after themselves.
    """
    if not path.exists():
        return
    for child in path.walk():
        if child.isdir():
            child.chmod(0o700)
    path.remove()


class _DeferredAssertionMixin(object):
    """
    Synchronous Deferred-related assertions support for testtools TestCase.

    This is provided for compatibility with Twisted's TestCase.  New code
    should use matchers instead.
    """
    successResultOf = unittest.SynchronousTestCase.successResultOf
    failureResultOf = unittest.SynchronousTestCase.failureResultOf
    assertNoResult = unittest.SynchronousTestCase.assertNoResult

    # Not related to Deferreds but required by the implementation of the above.
    assertIdentical = unittest.SynchronousTestCase.assertIdentical


class TestCase(testtools.TestCase, _MktempMixin, _DeferredAssertionMixin):
    """
    Base class for synchronous test cases.
    """

    # Eliot's validateLogging hard-codes a check for SkipTest when deciding
    # whether to check for valid logging, which is fair enough, since there's
    # no other API for checking whether a test has skipped. Setting
    # skipException tells testtools to treat unittest.SkipTest as the
    # exception that signals skipping.
    skipException = SkipTest

    def setUp(self):
        log.msg("--> Begin: %s <--" % (self.id()))
        super(TestCase, self).setUp()
