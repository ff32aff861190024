#!/usr/bin/env python3
"""
chaincore Setup Script
Installs the chaincore wallet library.

Usage:
    pip install -e .            Install for development
    pip install -e .[test]      Include test dependencies
"""

from setuptools import setup

setup(
    name='chaincore',
    version='1.0.0',
    description='Multi-chain HD wallet core: key derivation, transactions, signing and validation',
    python_requires='>=3.9',
    py_modules=['config'],
    packages=['chaincore', 'rpc'],
    install_requires=[
        'ecdsa>=0.18',
        'requests>=2.28',
        'pycryptodome>=3.15',
        'PyNaCl>=1.5',
        'mnemonic>=0.20',
    ],
    extras_require={
        'test': ['pytest>=7.0'],
    },
)
