"""
Setup script for Network Monitor.

Usage:
    pip install -e .
    pip install -e ".[test]"

Installs the ``network-monitor`` command.
"""
from setuptools import setup

setup(
    name='network-monitor',
    version='2.0.0',
    description='Headless per-adapter network usage and speed statistics engine',
    python_requires='>=3.9',
    packages=[
        'monitor',
        'storage',
        'config',
        'app',
    ],
    py_modules=['network_monitor'],
    install_requires=[
        'psutil',
    ],
    extras_require={
        'test': [
            'pytest',
            'hypothesis',
        ],
    },
    entry_points={
        'console_scripts': [
            'network-monitor=network_monitor:main',
        ],
    },
)
