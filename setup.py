#!/usr/bin/env python3
"""
Setup script for NFC JSON Tag
"""

from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="nfc-json-tag",
    version="1.0.0",
    description="Store small JSON objects on NFC tags through an ACS ACR1252 (PC/SC) reader",
    long_description=long_description,
    long_description_content_type="text/markdown",
    py_modules=[
        "main",
        "nfc_errors",
        "nfc_handler",
        "nfc_logging",
        "nfc_server",
        "nfc_tui",
        "session_registry",
        "tag_codec",
        "tag_operations",
        "tag_reader",
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Hardware",
        "Topic :: Utilities",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            # CLI group (launches the TUI without a command)
            "nfc-tag=main:main",
            # TUI directly
            "nfc-tui=nfc_tui:main",
        ],
    },
)
