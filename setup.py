#!/usr/bin/env python3

from setuptools import setup, find_packages
from pathlib import Path

classifiers = """
Development Status :: 3 - Alpha
Intended Audience :: Developers
Operating System :: POSIX
Programming Language :: Python :: 3
Topic :: Software Development :: Libraries :: Python Modules
Topic :: Utilities
"""

__doc__ = """Sort lines with a pool of worker processes and a k-way merge.

Input lines are dealt round-robin to worker processes over pipes,
each worker sorts its share, and the sorted streams are merged
back into one.
"""

requires = list(filter(
                lambda x: x and not '+' in x,
                (Path(__file__).parent/"requirements.txt")
                    .read_text()
                    .split('\n')
               ))

setup(
    name='pipesort',
    version='0.1.0',
    description=__doc__.split('\n', 1)[0],
    long_description = __doc__,
    keywords='sort merge pipes multiprocessing',
    install_requires = requires,
    extras_require = {
        'test': ['pytest'],
    },
    entry_points={
        # make the scripts available as command line scripts
        "console_scripts": [
            "pipesort = pipesort.cmd.sort:run",
            "pipesort-worker = pipesort.worker:run",
        ]
    },
    packages=find_packages(include=['pipesort', 'pipesort.*']),
    classifiers=list(filter(None, classifiers.split("\n"))),
    platforms=['posix'],
    python_requires='>=3.9',
)
