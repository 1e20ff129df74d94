# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Generate a PandaKnocker package.
"""

import re

from setuptools import setup, find_packages

with open("README.rst") as readme:
    description = readme.read()

with open("pandaknocker/__init__.py") as init:
    version = re.search(
        r'^__version__ = "([^"]+)"', init.read(), re.MULTILINE).group(1)


def parse_requirements(requirements_file):
    """
    Parse a requirements file, skipping comments and blank lines.
    """
    requirements = []
    with open(requirements_file) as f:
        for line in f:
            line = line.split('#', 1)[0].strip()
            if line:
                requirements.append(line)
    return requirements

# Parse the ``.in`` files. This will allow the dependencies to float when
# PandaKnocker is installed using ``pip install .``.
install_requires = parse_requirements("requirements/pandaknocker.txt.in")
dev_requires = parse_requirements("requirements/pandaknocker-dev.txt.in")

setup(
    # This is the human-targetted name of the software being packaged.
    name="PandaKnocker",
    # This is a string giving the version of the software being packaged.  For
    # simplicity it should be something boring like X.Y.Z.
    version=version,
    # This identifies the creators of this software.  This is left symbolic for
    # ease of maintenance.
    author="PandaKnocker Developers",

    # A short identifier for the license under which the project is released.
    license="Apache License, Version 2.0",

    # Some details about what PandaKnocker is.  Synchronized with the
    # README.rst to keep it up to date more easily.
    long_description=description,

    # This setuptools helper will find everything that looks like a *Python*
    # package (in other words, things that can be imported) which are part of
    # the PandaKnocker package.
    packages=find_packages(include=('pandaknocker', 'pandaknocker.*')),

    entry_points={
        # These are the command-line programs we want setuptools to install.
        'console_scripts': [
            'knocker = pandaknocker.cli.script:knocker_main',
        ],
    },

    python_requires=">=3.8",

    install_requires=install_requires,

    extras_require={
        # This extra is for developers who need to work on PandaKnocker
        # itself.
        "dev": dev_requires,
    },

    # Some "trove classifiers" which are relevant.
    classifiers=[
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        ],
    )
