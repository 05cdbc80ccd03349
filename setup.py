#!/usr/bin/env python

# cd taengine
# python setup.py sdist bdist_wheel
# pip install -e .

from setuptools import find_packages
from setuptools import setup
import re
import os

# Read version from package init
def get_version():
    init_path = os.path.join('taengine', '__init__.py')
    with open(init_path, 'r') as f:
        content = f.read()
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", content, re.M)
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Unable to find version string.")

DISTNAME = 'taengine'
DESCRIPTION = "taengine: Technical Indicator Computation Engine"
LONG_DESCRIPTION = "taengine computes moving averages, oscillators, volatility bands and volume indicators over OHLCV bar series, and aligns every output onto the bar timeline so indicators of different look-back depth overlay on one chart."

MAINTAINER = 'taengine developers'
MAINTAINER_EMAIL = ''
URL = ""
LICENSE = "Apache License, Version 2"
VERSION = get_version()

classifiers = ['Development Status :: 4 - Beta',
               'Programming Language :: Python',
               'Programming Language :: Python :: 3',
               'Programming Language :: Python :: 3.12',
               'License :: OSI Approved :: Apache Software License',
               'Intended Audience :: Financial and Insurance Industry',
               'Topic :: Office/Business :: Financial :: Investment',
               'Topic :: Scientific/Engineering :: Mathematics',
               'Operating System :: OS Independent']

install_reqs = [
    'numpy>=1.20',
    'pandas>=1.0',
    'polars>=0.20',
    'pyyaml>=5.0',
]

test_reqs = [
    'pytest>=7.0',
]

if __name__ == "__main__":
    setup(
        name=DISTNAME,
        version=VERSION,
        maintainer=MAINTAINER,
        maintainer_email=MAINTAINER_EMAIL,
        description=DESCRIPTION,
        license=LICENSE,
        url=URL,
        long_description=LONG_DESCRIPTION,
        packages=find_packages(include=['taengine', 'taengine.*']),
        package_data={'taengine.indicators': ['indicators.yml']},
        python_requires='>=3.9',
        classifiers=classifiers,
        install_requires=install_reqs,
        extras_require={'test': test_reqs},
    )
