#!/usr/bin/env python

from setuptools import setup

import pscred

setup(name='pscred',
      version=pscred.VERSION,
      description='Pointcheval-Sanders anonymous credentials with RSA accumulator revocation',
      packages=['pscred'],
      license="2-clause BSD",
      long_description="""Blind issuance, selective disclosure and aggregation of Pointcheval-Sanders credentials over pairing friendly curves, with a dynamic RSA accumulator for revocation.""",

      python_requires=">=3.8",
      install_requires=[
            "py_ecc >= 6.0.0",
            "msgpack >= 1.0.0",
            "sympy >= 1.9",
            "cryptography >= 3.1",
      ],
      extras_require={
            "test": [
                  "pytest >= 6.0.0",
                  "pytest-cov >= 2.10.0",
                  "paver >= 1.3.4",
            ],
      },
      entry_points={
            "console_scripts": ["pscred=pscred.cli:main"],
      },
      zip_safe=False,
)
